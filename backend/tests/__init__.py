"""
Pytest suite for the storefront backend.

Test categories:
- Unit tests: services against an in-memory database, gateway mocked
- API tests: routes through the ASGI app with dependency overrides
- Integration tests: schema constraints and concurrent sessions on a file database
"""
