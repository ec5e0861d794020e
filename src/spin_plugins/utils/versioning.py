"""Version management utilities."""

import logging
import operator
import re

import semver

from spin_plugins import __version__

logger = logging.getLogger(__name__)

# Comparator such as ">=1.2", "^0.5.1", "~2" or a bare "1.2.3" (caret)
_COMPARATOR_RE = re.compile(
    r"^(?P<op>>=|<=|>|<|==|=|\^|~)?\s*v?"
    r"(?P<version>\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)$"
)

_OPERATORS = {
    "==": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
    "<": operator.lt,
    "<=": operator.le,
}


def get_spin_version() -> str:
    """Get the host Spin version this package reports by default."""
    return __version__


def parse_version(version: str) -> semver.Version | None:
    """Parse a semantic version, returning None if it is not one."""
    try:
        return semver.Version.parse(version.strip())
    except (ValueError, TypeError, AttributeError):
        return None


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings, returning -1, 0 or 1.

    Semantic version ordering is used when both strings parse. Otherwise the
    raw strings are compared lexically, so "10.0" sorts before "9.0". Listing
    order and upgrade decisions both depend on this fallback.
    """
    va = parse_version(a)
    vb = parse_version(b)
    if va is not None and vb is not None:
        return va.compare(vb)
    return (a > b) - (a < b)


def _comparator_bounds(op: str, base: semver.Version, parts: int) -> list[tuple[str, semver.Version]]:
    if parts == 1:
        next_step = base.bump_major()
    else:
        next_step = base.bump_minor()

    if op in ("=", "=="):
        if parts == 3:
            return [("==", base)]
        return [(">=", base), ("<", next_step)]
    if op == ">":
        if parts == 3:
            return [(">", base)]
        return [(">=", next_step)]
    if op == ">=":
        return [(">=", base)]
    if op == "<":
        return [("<", base)]
    if op == "<=":
        if parts == 3:
            return [("<=", base)]
        return [("<", next_step)]
    if op == "~":
        return [(">=", base), ("<", next_step)]

    # Caret: the left-most non-zero component may not change
    if base.major > 0 or parts == 1:
        upper = base.bump_major()
    elif base.minor > 0 or parts == 2:
        upper = base.bump_minor()
    else:
        upper = base.bump_patch()
    return [(">=", base), ("<", upper)]


def parse_version_range(expression: str) -> list[tuple[str, semver.Version]]:
    """Parse a Cargo-style version range into (operator, version) bounds.

    Args:
        expression: Comma-separated comparators, e.g. ">=1.0, <3.0" or "^2.1".

    Returns:
        List of bounds that must all hold. "*" yields an empty list.

    Raises:
        ValueError: If any comparator cannot be parsed.
    """
    bounds: list[tuple[str, semver.Version]] = []
    clauses = [c.strip() for c in expression.split(",")]
    if not expression.strip() or any(not c for c in clauses):
        raise ValueError(f"Empty comparator in version range '{expression}'")

    for clause in clauses:
        if clause == "*":
            continue
        match = _COMPARATOR_RE.match(clause)
        if not match:
            raise ValueError(f"Invalid comparator '{clause}' in version range '{expression}'")
        raw = match.group("version")
        parts = raw.split("-")[0].split("+")[0].count(".") + 1
        base = semver.Version.parse(raw, optional_minor_and_patch=True)
        bounds.extend(_comparator_bounds(match.group("op") or "^", base, parts))
    return bounds


def version_satisfies(version: str, expression: str) -> bool:
    """Check whether a version satisfies a version range expression.

    A prerelease version is matched as its release, so a "2.2.0-pre0" host
    satisfies ">=2.2". Unparseable versions or ranges never match.
    """
    parsed = parse_version(version)
    if parsed is None:
        logger.warning(f"Cannot check compatibility of invalid version '{version}'")
        return False

    try:
        bounds = parse_version_range(expression)
    except ValueError as e:
        logger.warning(f"Cannot check compatibility against range '{expression}': {e}")
        return False

    release = parsed.finalize_version()
    return all(_OPERATORS[op](release, bound) for op, bound in bounds)
