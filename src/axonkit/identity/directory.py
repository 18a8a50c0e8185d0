"""Per-session identity directory.

Holds the identities known in each scope (the friend list and every group's
member list) together with the scope's collision set, and translates between
identities and alternate names through :mod:`axonkit.identity.codec`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from axonkit.adapters.base import ProtocolAdapter
from axonkit.errors import ClientNotInitializedError
from axonkit.identity import codec
from axonkit.models.identity import FRIENDS, GroupInfo, Identity, Scope

logger = logging.getLogger("axonkit.identity.directory")


@dataclass(frozen=True)
class ScopeTable:
    """Snapshot of one scope: identities in insertion order and collisions."""

    identities: dict[int, Identity] = field(default_factory=dict)
    collisions: frozenset[str] = frozenset({""})

    @classmethod
    def build(cls, members: Mapping[int, Identity]) -> ScopeTable:
        identities = dict(members)
        return cls(identities=identities, collisions=codec.collision_set(identities.values()))


class IdentityDirectory:
    """Identity tables for one session, fetched lazily from the adapter.

    A scope is fetched on first use and cached; ``refresh_scope(force=True)``
    re-fetches it, which membership-change events use to keep collision sets
    current.
    """

    def __init__(self, adapter: ProtocolAdapter | None = None) -> None:
        self._adapter = adapter
        self._scopes: dict[Scope, ScopeTable] = {}
        self._groups: dict[int, GroupInfo] | None = None

    @property
    def adapter(self) -> ProtocolAdapter:
        if self._adapter is None:
            raise ClientNotInitializedError("no protocol adapter bound")
        return self._adapter

    def reset(self, adapter: ProtocolAdapter | None = None) -> None:
        """Drop every table and bind to *adapter*."""
        self._adapter = adapter
        self.clear()

    def clear(self) -> None:
        self._scopes.clear()
        self._groups = None

    @property
    def is_empty(self) -> bool:
        return not self._scopes and self._groups is None

    def loaded_scopes(self) -> list[Scope]:
        return list(self._scopes)

    def table(self, scope: Scope) -> ScopeTable | None:
        return self._scopes.get(scope)

    # -- refresh ---------------------------------------------------------------

    async def refresh_scope(self, scope: Scope, force: bool = False) -> ScopeTable:
        """Fetch *scope* unless cached, then recompute its collision set.

        Args:
            scope: The friend list or one group's membership.
            force: Re-fetch from the adapter even when a table is cached.
                Group fetches also ask the adapter to bypass its own cache.

        Returns:
            The scope's current table.  Without *force*, two calls return the
            same table, so collision sets and alternate names stay stable.

        Raises:
            ClientNotInitializedError: If no adapter is bound.
        """
        cached = self._scopes.get(scope)
        if cached is not None and not force:
            return cached
        if scope.is_group:
            assert scope.group_id is not None
            members = await self.adapter.get_group_member_list(scope.group_id, force_refresh=force)
        else:
            members = await self.adapter.get_friend_list()
        table = ScopeTable.build(members)
        self._scopes[scope] = table
        logger.debug(
            "Refreshed %s: %d identities, %d colliding names",
            scope,
            len(table.identities),
            len(table.collisions) - 1,
        )
        return table

    async def groups(self, force: bool = False) -> dict[int, GroupInfo]:
        """Joined groups, fetched once unless *force* is set."""
        if self._groups is None or force:
            self._groups = dict(await self.adapter.get_group_list())
        return self._groups

    async def build(self) -> None:
        """Load the friend scope and every group scope.

        A group whose member list cannot be fetched is skipped and loaded
        lazily on first use.
        """
        groups = await self.groups(force=True)
        await self.refresh_scope(FRIENDS, force=True)
        for group_id in groups:
            try:
                await self.refresh_scope(Scope.group(group_id), force=True)
            except Exception:
                logger.warning("Failed to load members of group %s", group_id, exc_info=True)

    # -- resolution ------------------------------------------------------------

    async def resolve_name(self, identity: Identity) -> str:
        """Alternate name of *identity* within its own scope."""
        table = await self.refresh_scope(identity.scope)
        return codec.alternate_name(identity, table.collisions)

    async def resolve_id(self, scope: Scope, alternate_name: str) -> Identity | None:
        """Identity in *scope* named *alternate_name*.

        Args:
            scope: Scope to search.
            alternate_name: A display name, optionally suffixed ``#nnnn``.

        Returns:
            The matching identity, or ``None`` when nothing matches or a bare
            name collides within the scope.
        """
        table = await self.refresh_scope(scope)
        return codec.match_alternate_name(table.identities.values(), alternate_name, table.collisions)

    async def lookup(self, scope: Scope, numeric_id: int) -> Identity | None:
        table = await self.refresh_scope(scope)
        return table.identities.get(numeric_id)

    async def name_for_id(self, scope: Scope, numeric_id: int) -> str:
        """Alternate name for *numeric_id*, or :data:`codec.UNKNOWN_IDENTITY`.

        Never raises: fetch failures are logged and reported as unknown.
        """
        try:
            table = await self.refresh_scope(scope)
        except Exception:
            logger.warning("Failed to refresh %s", scope, exc_info=True)
            return codec.UNKNOWN_IDENTITY
        identity = table.identities.get(numeric_id)
        if identity is None:
            return codec.UNKNOWN_IDENTITY
        return codec.alternate_name(identity, table.collisions)

    def search(self, text: str) -> list[Identity]:
        """Group members across loaded groups that *text* names.

        Every entry sharing a numeric id with a direct match is included, so
        one person appears once per group they belong to.
        """
        group_tables = [t for s, t in self._scopes.items() if s.is_group]
        direct = [
            identity
            for table in group_tables
            for identity in table.identities.values()
            if codec.matches(identity, text)
        ]
        ids = {identity.numeric_id for identity in direct}
        return [
            identity
            for table in group_tables
            for identity in table.identities.values()
            if identity.numeric_id in ids
        ]
