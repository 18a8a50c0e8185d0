"""Identity directory and alternate-name codec."""

from axonkit.identity.codec import (
    UNKNOWN_IDENTITY,
    alternate_name,
    collision_set,
    effective_name,
    match_alternate_name,
    split_alternate_name,
)
from axonkit.identity.directory import IdentityDirectory, ScopeTable

__all__ = [
    "UNKNOWN_IDENTITY",
    "IdentityDirectory",
    "ScopeTable",
    "alternate_name",
    "collision_set",
    "effective_name",
    "match_alternate_name",
    "split_alternate_name",
]
