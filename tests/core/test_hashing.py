"""
Tests for day2ops.core.hashing module.

Tests cover:
- Digest format the remote executor writes back
- Comparison against reported digests in bytes or string form
"""

import hashlib

from day2ops.core.hashing import checksum_matches, plan_checksum


class TestPlanChecksum:
    """Tests for plan_checksum function."""

    def test_lowercase_hex_sha256(self):
        data = b'{"instructions":[]}'
        result = plan_checksum(data)

        assert result == hashlib.sha256(data).hexdigest()
        assert len(result) == 64
        assert result == result.lower()

    def test_deterministic(self):
        assert plan_checksum(b"abc") == plan_checksum(b"abc")

    def test_different_bytes_different_digest(self):
        assert plan_checksum(b"abc") != plan_checksum(b"abd")


class TestChecksumMatches:
    """Tests for checksum_matches function."""

    def test_string_digest(self):
        assert checksum_matches(b"plan", plan_checksum(b"plan"))

    def test_bytes_digest(self):
        """Secret-style stores hand the digest back as raw bytes."""
        assert checksum_matches(b"plan", plan_checksum(b"plan").encode())

    def test_trailing_whitespace_ignored(self):
        assert checksum_matches(b"plan", plan_checksum(b"plan") + "\n")

    def test_missing_never_matches(self):
        assert not checksum_matches(b"plan", None)
        assert not checksum_matches(b"plan", "")
        assert not checksum_matches(b"plan", b"")

    def test_other_plan_does_not_match(self):
        assert not checksum_matches(b"new plan", plan_checksum(b"old plan"))
