"""Role lookup against the profiles table."""

from __future__ import annotations

import asyncpg

from moddesk.moderation.domain.collaborators import IdentityDirectory
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy, RoleTier


class PostgresIdentityDirectory(IdentityDirectory):
    """Reads the numeric ``profiles.role`` column and maps it onto a tier.

    Unknown actors are treated as plain users so they fail authorization
    rather than lookup.
    """

    def __init__(self, pool: asyncpg.Pool, hierarchy: RoleHierarchy = DEFAULT_HIERARCHY) -> None:
        self.pool = pool
        self.hierarchy = hierarchy

    async def role_of(self, actor_id: str) -> RoleTier:
        rank = await self.pool.fetchval("SELECT role FROM profiles WHERE id = $1", actor_id)
        if rank is None:
            return RoleTier.USER
        return self.hierarchy.tier_for_rank(int(rank))
