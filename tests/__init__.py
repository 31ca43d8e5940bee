# keygate Test Suite
"""
Test suite including:
- Unit tests per component
- Use-case tests for the authentication service
- Security tests (enumeration, tampering, races)

Run with: pytest
"""
