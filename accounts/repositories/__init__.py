"""
Persistence adapters.

These modules encapsulate how users and sessions are stored and retrieved.
Services depend on these repositories rather than issuing SQL themselves.
"""
