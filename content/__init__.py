"""content/ -- Articles, slugs and favorites bookkeeping for Conduit.

Layer rule: content/ may import from core/ and auth/. It does NOT import
from api/.
"""
