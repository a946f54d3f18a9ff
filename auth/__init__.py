"""auth/ -- Credentials, bearer tokens and the authorization gate for Conduit.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or content/.
api/ and content/ import from auth/, not the other way around.
"""
