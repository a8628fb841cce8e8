"""
Deterministic hashing for checksum-gated plan completion.

The controller and the remote executor never acknowledge each other
directly. The controller writes plan bytes; the executor, after running
exactly those bytes, writes back their SHA-256. Completion is detected by
comparing the two digests, which tolerates restarts and duplicate writes on
either side.

Examples:
    >>> plan_checksum(b'{"instructions":[]}') == plan_checksum(b'{"instructions":[]}')
    True
    >>> len(plan_checksum(b"x"))
    64

Tags:
    hashing, checksum, plan-protocol, day2ops
"""

import hashlib


def plan_checksum(data: bytes) -> str:
    """Return the lowercase hex SHA-256 of *data*.

    This is the exact form the remote executor writes to
    ``applied-checksum``, so it must never be truncated or re-encoded.
    """
    return hashlib.sha256(data).hexdigest()


def checksum_matches(data: bytes, reported: bytes | str | None) -> bool:
    """Check a digest reported by the remote side against *data*.

    ``reported`` may arrive as raw bytes (secret-style storage) or as a
    string; a missing value never matches.
    """
    if not reported:
        return False
    if isinstance(reported, bytes):
        reported = reported.decode("ascii", errors="replace")
    return plan_checksum(data) == reported.strip()

