"""
Tests for dbconverge.core.hashing module.

Tests cover:
- Deterministic digest computation
- Full-length hex encoding
- Sensitivity to any content change
"""

import hashlib

from dbconverge.core.hashing import DIGEST_LENGTH, compute_content_hash


class TestComputeContentHash:
    """Tests for compute_content_hash function."""

    def test_matches_sha256_of_utf8(self):
        content = "CREATE TABLE public.straße (id INT);"
        assert compute_content_hash(content) == hashlib.sha256(content.encode("utf-8")).hexdigest()

    def test_full_length_lowercase_hex(self):
        result = compute_content_hash("SELECT 1;")
        assert len(result) == DIGEST_LENGTH == 64
        assert result == result.lower()
        int(result, 16)

    def test_deterministic(self):
        assert compute_content_hash("SELECT 1;") == compute_content_hash("SELECT 1;")

    def test_whitespace_change_changes_hash(self):
        assert compute_content_hash("SELECT 1;") != compute_content_hash("SELECT 1;\n")

    def test_empty_content(self):
        assert compute_content_hash("") == hashlib.sha256(b"").hexdigest()
