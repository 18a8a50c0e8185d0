"""Alternate-name codec.

Display names are not unique: two friends, or two members of one group, may
share a nickname.  Within a scope, every name that occurs more than once is
disambiguated by appending ``#`` and the last four digits of the numeric id,
e.g. ``Tom#1234``.  Names that occur once are used unchanged.

These functions are pure; the caller supplies the scope's identities and its
collision set (see :class:`~axonkit.identity.directory.IdentityDirectory`).
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from axonkit.models.identity import Identity

SUFFIX_SEPARATOR = "#"
SUFFIX_DIGITS = 4

# Name reported for identities the directory cannot find.
UNKNOWN_IDENTITY = "Unknown User"

_SUFFIX_RE = re.compile(r"^(?P<name>.*)#(?P<tail>\d{1,4})$", re.DOTALL)


def effective_name(identity: Identity) -> str:
    """Return the group card if set, else the display name."""
    return identity.card or identity.display_name


def id_tail(numeric_id: int) -> str:
    return str(numeric_id)[-SUFFIX_DIGITS:]


def collision_set(identities: Iterable[Identity]) -> frozenset[str]:
    """Names shared by more than one identity.

    The empty name always collides, so nameless identities are always
    suffixed.
    """
    counts = Counter(effective_name(i) for i in identities)
    duplicates = {name for name, count in counts.items() if count > 1}
    duplicates.add("")
    return frozenset(duplicates)


def alternate_name(identity: Identity, collisions: frozenset[str]) -> str:
    name = effective_name(identity)
    if name in collisions:
        return f"{name}{SUFFIX_SEPARATOR}{id_tail(identity.numeric_id)}"
    return name


def split_alternate_name(text: str) -> tuple[str, str | None]:
    """Split ``Tom#1234`` into ``("Tom", "1234")``.

    Returns ``(text, None)`` when there is no numeric suffix.
    """
    m = _SUFFIX_RE.match(text)
    if m is None:
        return text, None
    return m.group("name"), m.group("tail")


def matches(identity: Identity, text: str) -> bool:
    """Loose match used for searching: suffix-aware, ignores collisions."""
    name, tail = split_alternate_name(text)
    if tail is not None and id_tail(identity.numeric_id) == tail:
        if effective_name(identity) == name:
            return True
    return effective_name(identity) == text


def match_alternate_name(
    identities: Iterable[Identity],
    text: str,
    collisions: frozenset[str],
) -> Identity | None:
    """Resolve an alternate name back to an identity.

    Two phases: a suffixed name must match both the id tail and the
    un-suffixed name; otherwise the text must equal a name that does not
    collide.  The first identity in iteration order wins, which is a
    best-effort answer when two colliding identities share an id tail.

    Args:
        identities: Every identity of one scope, in listing order.
        text: Name as sent by the client.
        collisions: The scope's collision set.

    Returns:
        The matched identity, or ``None``.
    """
    candidates = list(identities)
    name, tail = split_alternate_name(text)
    if tail is not None:
        for identity in candidates:
            if id_tail(identity.numeric_id) == tail and effective_name(identity) == name:
                return identity
    # A raw name may itself end in "#digits", so fall through to exact match.
    if text in collisions:
        return None
    for identity in candidates:
        if effective_name(identity) == text:
            return identity
    return None
