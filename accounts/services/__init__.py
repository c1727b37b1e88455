"""
High-level use cases for the accounts API.

Each service module orchestrates repositories/adapters to implement business
rules (log in, rotate a session, register, change password, etc.).

Routers (FastAPI endpoints) call these services instead of touching the
database or the token codec directly.
"""
