"""Contracts for the identity and posts services the moderation engine talks to."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from moddesk.moderation.domain.roles import RoleTier


class IdentityDirectory(Protocol):
    """Supplies an actor's current authority. Caller-supplied roles are never trusted."""

    async def role_of(self, actor_id: str) -> RoleTier:
        ...


class PostsModeration(Protocol):
    """Sink for post-level consequences of a resolution, plus the lookups intake needs."""

    async def author_of(self, post_id: str) -> Optional[str]:
        """Return the post author's id, or ``None`` when the post does not exist."""

    async def mark_removed(self, post_id: str, reason: str, actor_id: str, at: datetime) -> None:
        ...

    async def mark_sensitive(self, post_id: str, actor_id: str, at: datetime) -> None:
        ...


@dataclass
class InMemoryIdentityDirectory(IdentityDirectory):
    roles: dict[str, RoleTier] = field(default_factory=dict)

    async def role_of(self, actor_id: str) -> RoleTier:
        return self.roles.get(actor_id, RoleTier.USER)


@dataclass
class InMemoryPosts(PostsModeration):
    """Post store stand-in that records every moderation mutation."""

    authors: dict[str, str] = field(default_factory=dict)
    moderation: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def author_of(self, post_id: str) -> Optional[str]:
        return self.authors.get(post_id)

    async def mark_removed(self, post_id: str, reason: str, actor_id: str, at: datetime) -> None:
        self.calls.append(("mark_removed", post_id))
        self.moderation[post_id] = {
            "moderation_status": "removed",
            "moderation_reason": reason,
            "moderated_by": actor_id,
            "moderated_at": at,
        }

    async def mark_sensitive(self, post_id: str, actor_id: str, at: datetime) -> None:
        self.calls.append(("mark_sensitive", post_id))
        state = self.moderation.setdefault(post_id, {})
        state.update({"is_sensitive": True, "moderated_by": actor_id, "moderated_at": at})
