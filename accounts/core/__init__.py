"""
Core utilities shared across the accounts service.

This package hosts configuration, the error taxonomy, logging setup, password
hashing, the session token codec and the cross-cutting HTTP middleware. Higher
layers depend on these primitives instead of reading the environment or
importing storage code directly.
"""
