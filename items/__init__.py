"""items/ -- Shop item passthrough for Shopfront.

Layer rule: items/ imports from auth/ only for the shared error taxonomy and
engine helper. It does NOT import from api/.
"""
