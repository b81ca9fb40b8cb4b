from __future__ import annotations

import pytest

from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy, RoleTier


def test_default_ranks_follow_authority_order():
    ranks = [DEFAULT_HIERARCHY.rank_of(tier) for tier in RoleTier]
    assert ranks == sorted(ranks)
    assert DEFAULT_HIERARCHY.compare(RoleTier.SENIOR_MOD, RoleTier.JUNIOR_MOD) == 1
    assert DEFAULT_HIERARCHY.compare(RoleTier.MODERATOR, RoleTier.MODERATOR) == 0
    assert DEFAULT_HIERARCHY.compare(RoleTier.USER, RoleTier.ADMIN) == -1


def test_escalation_targets_are_staff_tiers_strictly_above():
    assert DEFAULT_HIERARCHY.escalation_targets(RoleTier.JUNIOR_MOD) == (
        RoleTier.MODERATOR,
        RoleTier.SENIOR_MOD,
        RoleTier.ADMIN,
    )
    assert DEFAULT_HIERARCHY.escalation_targets(RoleTier.SENIOR_MOD) == (RoleTier.ADMIN,)
    assert DEFAULT_HIERARCHY.escalation_targets(RoleTier.ADMIN) == ()


def test_non_staff_tiers_are_never_targets_or_visible():
    assert RoleTier.TRUSTED_USER not in DEFAULT_HIERARCHY.escalation_targets(RoleTier.USER)
    assert not DEFAULT_HIERARCHY.is_staff(RoleTier.TRUSTED_USER)
    assert DEFAULT_HIERARCHY.is_staff(RoleTier.JUNIOR_MOD)
    assert DEFAULT_HIERARCHY.visible_tiers(RoleTier.MODERATOR) == (RoleTier.JUNIOR_MOD, RoleTier.MODERATOR)
    assert DEFAULT_HIERARCHY.visible_tiers(RoleTier.USER) == ()


def test_configured_ranks_reject_duplicates():
    with pytest.raises(ValueError, match="duplicate_role_rank"):
        RoleHierarchy.from_config({"JUNIOR_MOD": 5})


def test_configured_ranks_override_defaults():
    hierarchy = RoleHierarchy.from_config({"moderator": 6, "SENIOR_MOD": 9})
    assert hierarchy.rank_of(RoleTier.MODERATOR) == 6
    assert hierarchy.rank_of(RoleTier.SENIOR_MOD) == 9
    assert hierarchy.rank_of(RoleTier.ADMIN) == 10


def test_stored_numeric_role_clamps_down_to_a_tier():
    assert DEFAULT_HIERARCHY.tier_for_rank(4) is RoleTier.JUNIOR_MOD
    assert DEFAULT_HIERARCHY.tier_for_rank(7) is RoleTier.SENIOR_MOD
    assert DEFAULT_HIERARCHY.tier_for_rank(99) is RoleTier.ADMIN
    assert DEFAULT_HIERARCHY.tier_for_rank(-1) is RoleTier.USER


def test_tier_parse_accepts_names_only():
    assert RoleTier.parse("senior_mod") is RoleTier.SENIOR_MOD
    assert RoleTier.parse(RoleTier.ADMIN) is RoleTier.ADMIN
    with pytest.raises(ValueError):
        RoleTier.parse("7")
    assert RoleTier.JUNIOR_MOD.display_name == "Junior Moderator"
    with pytest.raises(ValueError):
        RoleTier.parse("boss")


def test_hierarchy_parse_resolves_ranks_with_configured_numbering():
    hierarchy = RoleHierarchy.from_config({"SENIOR_MOD": 8})

    assert hierarchy.parse("8") is RoleTier.SENIOR_MOD
    assert hierarchy.parse(10) is RoleTier.ADMIN
    assert hierarchy.parse("moderator") is RoleTier.MODERATOR
    with pytest.raises(ValueError):
        hierarchy.parse("7")
