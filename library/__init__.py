"""library/ -- Movie library: the owned resource the auth guards protect.

Layer rule: library/ may import from core/ and auth/ (for the shared engine
factory). It does NOT import from api/ or web/.
"""
