"""Airsoft gear marketplace: REST backend over Supabase plus a Python client SDK."""

__version__ = "1.0.0"
