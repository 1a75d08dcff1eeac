"""Library circulation service: reservations, loans, fines and settings."""

__version__ = "0.1.0"
