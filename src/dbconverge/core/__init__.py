"""
Core primitives: errors, hashing, logging, settings, the executor protocol
and the migration engine (``dbconverge.core.migrations``).
"""
