"""auth/ -- Session authentication and authorization package for ReelGuard.

Building blocks: CredentialHasher (passwords.py), SessionSigner (signing.py),
SessionStore (sessions.py), SessionMiddleware (middleware.py), guards
(dependencies.py) and the AuthService that sequences them (service.py).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, web/, or library/.
api/ and web/ import from auth/, not the other way around.
"""
