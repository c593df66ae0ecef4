"""Classify a remote daemon's version against the local client version."""

from __future__ import annotations

from ..types import VersionInfo, VersionParseError, VersionStatus

UNKNOWN_VERSION = "v0.0.0"


def parse(version: str) -> VersionInfo:
    """Parse ``"v1.4.0"`` or ``"1.4.0"`` into a VersionInfo."""
    text = version.strip()
    if text.startswith("v"):
        text = text[1:]
    parts = text.split(".")
    if len(parts) != 3:
        raise VersionParseError(f"Expected major.minor.patch, got {version!r}")
    try:
        major, minor, patch = (int(p) for p in parts)
    except ValueError as e:
        raise VersionParseError(f"Non-numeric version component in {version!r}") from e
    if min(major, minor, patch) < 0:
        raise VersionParseError(f"Negative version component in {version!r}")
    return VersionInfo(major, minor, patch)


def is_too_far(current: VersionInfo, remote: VersionInfo) -> bool:
    """True when ``remote`` is far enough ahead that ``current`` counts as behind."""
    if remote.major > current.major + 1:
        return True
    if remote.major == current.major + 1 and remote.minor > 0:
        return True
    if remote.major == current.major and remote.minor > current.minor + 2:
        return True
    return False


def classify(
    current: str | VersionInfo,
    remote: str,
    reported: str | VersionStatus | None = None,
) -> VersionStatus:
    """Return the staleness badge for a server reporting ``remote``.

    Version-distance rules win over whatever status the server reported.
    """
    if remote.strip() == UNKNOWN_VERSION:
        return VersionStatus.BEHIND

    local = current if isinstance(current, VersionInfo) else parse(current)
    theirs = parse(remote)

    if is_too_far(local, theirs):
        return VersionStatus.BEHIND
    if theirs == local:
        return VersionStatus.UPDATED
    if reported is None:
        return VersionStatus.CRITICAL
    try:
        return VersionStatus(reported)
    except ValueError:
        return VersionStatus.CRITICAL
