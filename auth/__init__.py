"""auth/ -- Authentication decision engine for SessionGuard.

Credential hashing, lockout tracking, the credentials authenticator, the
federated identity resolver, and session claim assembly.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
