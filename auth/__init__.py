"""auth/ -- Authentication for Stockroom: credential store, password hashing,
server-side sessions, signed tokens, and the route guards built on them.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, web/, core/, or inventory/.
api/ and web/ import from auth/, not the other way around.
"""
