"""
Column address helpers and attribute name resolution.

A column address is the literal string "family:qualifier". A family-level
column (no qualifier) is addressed as "family:".

resolve_attribute_name() maps the names application code uses to column
addresses, given the declared families and aliases of an entity type:

    "meta:author"   -> "meta:author"   (declared family)
    "meta_author"   -> "meta:author"   (longest declared family prefix wins)
    "title"         -> "title:"        (bare family name)
    "author"        -> "meta:author"   (alias)
    anything else   -> None

Invariants:
    - "timestamp" never resolves; it names the row timestamp
    - Resolution is a pure function of its arguments
"""

from __future__ import annotations

import difflib
from collections.abc import Collection, Mapping

ROW_TIMESTAMP = "timestamp"


def split_address(address: str) -> tuple[str, str]:
    """Split a column address into (family, qualifier)."""
    family, _, qualifier = address.partition(":")
    return family, qualifier


def family_of(address: str) -> str:
    return split_address(address)[0]


def qualifier_of(address: str) -> str:
    return split_address(address)[1]


def make_address(family: str, qualifier: str = "") -> str:
    """Compose a column address from a family and a qualifier."""
    if not family or ":" in family:
        raise ValueError(f"Invalid column family name: {family!r}")
    return f"{family}:{qualifier}"


def resolve_attribute_name(
    candidate: str,
    families: Collection[str],
    aliases: Mapping[str, str] | None = None,
) -> str | None:
    """Resolve an attribute name to a column address.

    Args:
        candidate: Name used by application code
        families: Declared column families of the entity type
        aliases: Alias name -> column address

    Returns:
        Column address, or None when the name does not resolve
    """
    if not candidate or candidate == ROW_TIMESTAMP:
        return None
    if aliases and candidate in aliases:
        candidate = aliases[candidate]

    if ":" in candidate:
        return candidate if family_of(candidate) in families else None

    if candidate in families:
        return make_address(candidate)

    for family in sorted(families, key=len, reverse=True):
        prefix = f"{family}_"
        if candidate.startswith(prefix) and len(candidate) > len(prefix):
            return make_address(family, candidate[len(prefix):])
    return None


def suggest_names(candidate: str, known: Collection[str], limit: int = 3) -> list[str]:
    """Known names close to an unresolved candidate, best first."""
    return difflib.get_close_matches(candidate, list(known), n=limit, cutoff=0.6)
