"""
FastAPI routers grouped by domain (auth, sessions, users).

Each module exposes an APIRouter that the application factory includes.
"""
