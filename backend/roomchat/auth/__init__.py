"""Authentication module (email + password accounts, JWT bearer tokens).

Services:
    - AuthService: registration and login.
    - IdentityVerifier: bearer token -> public user identity.
"""
