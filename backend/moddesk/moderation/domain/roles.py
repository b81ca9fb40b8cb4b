"""Moderator authority tiers and the escalation ladder between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping


class RoleTier(IntEnum):
    """Account authority levels. Values are the default ranks."""

    USER = 0
    TRUSTED_USER = 1
    JUNIOR_MOD = 3
    MODERATOR = 5
    SENIOR_MOD = 7
    ADMIN = 10

    @property
    def display_name(self) -> str:
        return ROLE_NAMES[self]

    @classmethod
    def parse(cls, value: "RoleTier | str") -> "RoleTier":
        """Accept a tier or its name (case-insensitive). Ranks go through :meth:`RoleHierarchy.parse`."""
        if isinstance(value, RoleTier):
            return value
        text = str(value).strip()
        try:
            return cls[text.upper()]
        except KeyError as exc:
            raise ValueError(f"unknown_role:{value}") from exc


ROLE_NAMES: dict[RoleTier, str] = {
    RoleTier.USER: "User",
    RoleTier.TRUSTED_USER: "Trusted User",
    RoleTier.JUNIOR_MOD: "Junior Moderator",
    RoleTier.MODERATOR: "Moderator",
    RoleTier.SENIOR_MOD: "Senior Moderator",
    RoleTier.ADMIN: "Administrator",
}

STAFF_TIERS: tuple[RoleTier, ...] = (
    RoleTier.JUNIOR_MOD,
    RoleTier.MODERATOR,
    RoleTier.SENIOR_MOD,
    RoleTier.ADMIN,
)


@dataclass(frozen=True)
class RoleHierarchy:
    """Ordered catalogue of tiers with a configurable rank per tier.

    All comparisons between roles go through :meth:`compare` so call sites never
    look at raw rank integers.
    """

    ranks: Mapping[RoleTier, int] = field(default_factory=lambda: {tier: int(tier) for tier in RoleTier})
    staff: tuple[RoleTier, ...] = STAFF_TIERS

    def __post_init__(self) -> None:
        resolved = {tier: int(self.ranks.get(tier, int(tier))) for tier in RoleTier}
        if len(set(resolved.values())) != len(resolved):
            raise ValueError("duplicate_role_rank")
        object.__setattr__(self, "ranks", resolved)
        object.__setattr__(self, "staff", tuple(sorted(self.staff, key=lambda tier: resolved[tier])))

    @classmethod
    def from_config(cls, overrides: Mapping[str, int] | None = None) -> "RoleHierarchy":
        ranks = {tier: int(tier) for tier in RoleTier}
        for name, rank in (overrides or {}).items():
            ranks[RoleTier.parse(name)] = int(rank)
        return cls(ranks=ranks)

    def rank_of(self, role: RoleTier) -> int:
        return self.ranks[role]

    def parse(self, value: RoleTier | str | int) -> RoleTier:
        """Resolve a tier name, or a rank under this hierarchy's numbering."""
        if isinstance(value, RoleTier):
            return value
        text = str(value).strip()
        if text.lstrip("-").isdigit():
            rank = int(text)
            for tier, tier_rank in self.ranks.items():
                if tier_rank == rank:
                    return tier
            raise ValueError(f"unknown_role:{value}")
        return RoleTier.parse(text)

    def compare(self, left: RoleTier, right: RoleTier) -> int:
        """Return -1, 0 or 1 as ``left`` ranks below, equal to or above ``right``."""
        a, b = self.rank_of(left), self.rank_of(right)
        return (a > b) - (a < b)

    def at_least(self, role: RoleTier, required: RoleTier) -> bool:
        return self.compare(role, required) >= 0

    def is_staff(self, role: RoleTier) -> bool:
        return self.at_least(role, self.staff[0])

    def escalation_targets(self, current: RoleTier) -> tuple[RoleTier, ...]:
        """Staff tiers strictly above ``current``, lowest first."""
        return tuple(tier for tier in self.staff if self.compare(tier, current) > 0)

    def visible_tiers(self, role: RoleTier) -> tuple[RoleTier, ...]:
        """Staff tiers whose queues an actor at ``role`` may work."""
        return tuple(tier for tier in self.staff if self.compare(tier, role) <= 0)

    def tier_for_rank(self, rank: int) -> RoleTier:
        """Clamp a stored numeric role to the highest tier not above it."""
        best = min(RoleTier, key=lambda tier: self.ranks[tier])
        for tier in sorted(RoleTier, key=lambda t: self.ranks[t]):
            if self.ranks[tier] <= rank:
                best = tier
        return best


DEFAULT_HIERARCHY = RoleHierarchy()
