"""
Dotted-numeric version comparison.
"""

from typing import List

from mollylauncher.core.errors import InvalidVersionError


def parse_version(version: str) -> List[int]:
    """
    Convert a version string to a list of integers.

    Accepts surrounding whitespace and a single leading ``v``/``V``
    ("v1.2.0" is treated as "1.2.0"). Any other non-numeric segment fails.

    Raises:
        InvalidVersionError: version is empty or a segment is not a number
    """
    if not isinstance(version, str):
        raise InvalidVersionError(str(version))

    text = version.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    if not text:
        raise InvalidVersionError(version)

    parts = []
    for segment in text.split('.'):
        if not (segment.isascii() and segment.isdigit()):
            raise InvalidVersionError(version)
        parts.append(int(segment))
    return parts


def compare_versions(local: str, remote: str) -> int:
    """
    Compare version strings component-wise as integers.

    Args:
        local: Left-hand version (e.g. the running version)
        remote: Right-hand version (e.g. the manifest version)

    Returns:
        -1: local < remote (needs update)
         0: local == remote (up to date)
         1: local > remote (local is newer)
    """
    local_parts = parse_version(local)
    remote_parts = parse_version(remote)

    # Pad to equal length
    max_len = max(len(local_parts), len(remote_parts))
    local_parts.extend([0] * (max_len - len(local_parts)))
    remote_parts.extend([0] * (max_len - len(remote_parts)))

    for l, r in zip(local_parts, remote_parts):
        if l < r:
            return -1
        elif l > r:
            return 1
    return 0


def is_newer(candidate: str, current: str) -> bool:
    """True when ``candidate`` is strictly greater than ``current``."""
    return compare_versions(candidate, current) > 0
