"""
Federated Identity Client

OAuth2 authorization-code sign-in against an external identity provider
(Google by default).

Two network calls, both outside any store lock:
1. Exchange the authorization code for an access token
2. Fetch the profile (id, email, name) with the access token

Every failure (transport error, non-2xx status, bad JSON, missing field)
is raised as FederatedAuthFailed. No retries.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import FederatedAuthFailed
from ..models import FederatedProfile


logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
DEFAULT_TIMEOUT_SECONDS = 10.0


class FederatedIdentityClient:
    """
    Client for one OAuth2 provider.

    Example:
        >>> client = FederatedIdentityClient("client-id", "client-secret",
        ...                                  "https://app.example.com/callback")
        >>> token = client.exchange_code(code)
        >>> profile = client.fetch_profile(token)
    """

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str,
                 token_url: str = GOOGLE_TOKEN_URL,
                 userinfo_url: str = GOOGLE_USERINFO_URL,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 http_client: Optional[httpx.Client] = None):
        """
        Args:
            client_id: OAuth client id
            client_secret: OAuth client secret
            redirect_uri: Redirect URI registered with the provider
            token_url: Token endpoint
            userinfo_url: Profile endpoint
            timeout: Per-request timeout in seconds
            http_client: Optional shared httpx.Client (tests inject one
                with a MockTransport)
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._token_url = token_url
        self._userinfo_url = userinfo_url
        self._http = http_client or httpx.Client(timeout=timeout,
                                                 follow_redirects=False)

    def exchange_code(self, authorization_code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            authorization_code: Code returned to the redirect URI

        Returns:
            Provider access token

        Raises:
            FederatedAuthFailed: On any failure
        """
        if not authorization_code:
            raise FederatedAuthFailed('Missing authorization code')

        form = {
            'client_id': self._client_id,
            'client_secret': self._client_secret,
            'code': authorization_code,
            'redirect_uri': self._redirect_uri,
            'grant_type': 'authorization_code',
        }
        data = self._request_json('POST', self._token_url, data=form,
                                  headers={'Accept': 'application/json'})

        access_token = data.get('access_token')
        if not access_token or not isinstance(access_token, str):
            logger.warning("Provider token response had no access token")
            raise FederatedAuthFailed('Provider returned no access token')
        return access_token

    def fetch_profile(self, access_token: str) -> FederatedProfile:
        """
        Fetch the signed-in user's profile.

        Args:
            access_token: Token from exchange_code()

        Returns:
            FederatedProfile with provider id, email and display name

        Raises:
            FederatedAuthFailed: On any failure
        """
        data = self._request_json(
            'GET', self._userinfo_url,
            headers={'Authorization': f'Bearer {access_token}'},
        )

        provider_id = data.get('id') or data.get('sub')
        email = data.get('email')
        if not provider_id or not email:
            logger.warning("Provider profile missing id or email")
            raise FederatedAuthFailed('Provider profile incomplete')

        return FederatedProfile(
            id=str(provider_id),
            email=str(email),
            name=str(data.get('name') or ''),
        )

    def authenticate(self, authorization_code: str) -> FederatedProfile:
        """Run both calls: code exchange, then profile fetch."""
        return self.fetch_profile(self.exchange_code(authorization_code))

    def close(self) -> None:
        self._http.close()

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Provider returned HTTP %s for %s",
                           e.response.status_code, url)
            raise FederatedAuthFailed() from e
        except httpx.HTTPError as e:
            logger.warning("Provider request to %s failed: %s", url, type(e).__name__)
            raise FederatedAuthFailed() from e

        try:
            data = response.json()
        except ValueError as e:
            raise FederatedAuthFailed('Provider returned invalid JSON') from e
        if not isinstance(data, dict):
            raise FederatedAuthFailed('Provider returned unexpected payload')
        return data
