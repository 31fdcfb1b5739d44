"""auth/ -- Authentication and audit-trail core for the CRA Saint-Louis API.

Layer rule: auth/ imports only core/ + stdlib + third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
auth/dependencies.py is the single FastAPI-aware module in this package.
"""
