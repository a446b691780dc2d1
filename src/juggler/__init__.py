"""juggler - mirror local TODOs into Google Tasks.

Modules:
    juggler.google  - PKCE browser login and access token refresh
    juggler.tasks   - Google Tasks client and one-way sync
    juggler.credential_store - refresh token storage in the OS keychain
"""

__version__ = "0.1.0"
