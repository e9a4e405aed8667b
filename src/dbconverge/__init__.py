"""
dbconverge: converge a PostgreSQL database to the state described by an
ordered manifest of idempotent SQL change scripts.

Scripts already applied are tracked by name and SHA-256 in a ledger table,
so re-running the tool only executes new or edited scripts. The whole
manifest runs in one transaction, rolled back in dry-run mode.
"""

__version__ = "0.3.0"
