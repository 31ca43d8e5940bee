# Mail Module
"""
Out-of-band delivery of MFA codes.
"""

from .dispatchers import (
    EmailDispatcher,
    SMTPDispatcher,
    ConsoleDispatcher,
    MemoryDispatcher,
    render_mfa_body,
)

__all__ = [
    'EmailDispatcher',
    'SMTPDispatcher',
    'ConsoleDispatcher',
    'MemoryDispatcher',
    'render_mfa_body',
]
