"""
Deterministic content hashing for change detection.

The ledger stores one digest per applied script. Comparing the stored digest
with the digest of the file on disk is what turns a re-run into a no-op and
what detects an edited, already-applied script.

Manifesto:
    - **Deterministic:** same text, same digest, on every platform
    - **Full digest:** the whole 64-char SHA-256 hex string is persisted and
      compared verbatim, never truncated
    - **Text in, hex out:** content is encoded as UTF-8 before hashing

Examples:
    >>> compute_content_hash("SELECT 1;") == compute_content_hash("SELECT 1;")
    True
    >>> len(compute_content_hash(""))
    64

Tags:
    hashing, change-detection, idempotency, dbconverge
"""

import hashlib

DIGEST_LENGTH = 64


def compute_content_hash(content: str) -> str:
    """
    Compute the SHA-256 hex digest of a script's text.

    Args:
        content: Raw script text exactly as read from disk

    Returns:
        Lower-case 64-char hex string
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
