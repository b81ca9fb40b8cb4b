"""Post-level consequences of moderation decisions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import asyncpg

from moddesk.moderation.domain.collaborators import PostsModeration


class PostgresPostsModeration(PostsModeration):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def author_of(self, post_id: str) -> Optional[str]:
        author_id = await self.pool.fetchval("SELECT author_id FROM posts WHERE id = $1", post_id)
        return str(author_id) if author_id is not None else None

    async def mark_removed(self, post_id: str, reason: str, actor_id: str, at: datetime) -> None:
        query = """
        UPDATE posts
        SET moderation_status = 'removed',
            moderation_reason = $2,
            moderated_by = $3,
            moderated_at = $4
        WHERE id = $1
        """
        await self.pool.execute(query, post_id, reason, actor_id, at)

    async def mark_sensitive(self, post_id: str, actor_id: str, at: datetime) -> None:
        query = """
        UPDATE posts
        SET is_sensitive = TRUE,
            moderated_by = $2,
            moderated_at = $3
        WHERE id = $1
        """
        await self.pool.execute(query, post_id, actor_id, at)
