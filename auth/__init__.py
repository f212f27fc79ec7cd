"""auth/ -- Authentication and authorization package for Wayfarer.

Layer rule: auth/ imports stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way
around, so nothing in here knows about HTTP status codes or FastAPI.
"""
