"""Granted-scope checks"""
from typing import Iterable, List, Optional, Sequence

from socialink.schemas.oauth import GranularScope

REQUIRED_INSTAGRAM_SCOPES = ("pages_show_list", "instagram_basic")


def normalize_scopes(scopes) -> List[str]:
    """Split a comma/space separated string (or iterable) into unique scope names, keeping order"""
    if scopes is None:
        return []
    if isinstance(scopes, str):
        scopes = scopes.replace(" ", ",").split(",")
    seen = []
    for scope in scopes:
        scope = (scope or "").strip()
        if scope and scope not in seen:
            seen.append(scope)
    return seen


def missing_permissions(
    granted_scopes: Iterable[str],
    granular_scopes: Optional[Iterable[GranularScope]] = None,
    required: Sequence[str] = REQUIRED_INSTAGRAM_SCOPES,
) -> List[str]:
    """Required scopes that were not granted, in the order of ``required``.

    Explicit scopes and the ``scope`` of each granular entry count as granted;
    comparison is case-insensitive and target ids are ignored.
    """
    granted = {scope.strip().lower() for scope in granted_scopes or [] if scope}
    for entry in granular_scopes or []:
        if entry.scope:
            granted.add(entry.scope.strip().lower())
    return [scope for scope in required if scope.lower() not in granted]


def format_missing_permissions(missing: Sequence[str]) -> str:
    return f"Missing required permissions: {', '.join(missing)}."
