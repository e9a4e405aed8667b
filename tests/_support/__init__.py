"""Test support helpers (fake database, fixture file builders)."""
