"""User-account service: registration, profiles and revocable login sessions."""

__version__ = "0.1.0"
