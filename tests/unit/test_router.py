"""
Router 单元测试：回退链解析与限流跳过
"""

import pytest

from ensemble.core.enums import Tier
from ensemble.core.exceptions import InvalidTierException
from ensemble.services.routing.router import Router


def test_resolve_chain_preserves_configured_order(make_settings, rate_limiter) -> None:
    settings = make_settings({"major": ["B", "A", "C"]}, ["A", "B", "C"])
    router = Router(settings, rate_limiter)

    chain = router.resolve_chain(Tier.MAJOR)

    assert [p.name for p in chain] == ["B", "A", "C"]


def test_unconfigured_tier_returns_empty_chain(make_settings, rate_limiter) -> None:
    router = Router(make_settings({}, ["A"]), rate_limiter)

    assert router.resolve_chain("standard") == []
    assert router.profile_for_tier("standard") is None


def test_no_profiles_returns_empty_chain(make_settings, rate_limiter) -> None:
    router = Router(make_settings({"major": ["A"]}, []), rate_limiter)

    assert router.resolve_chain(Tier.MAJOR) == []


def test_unknown_tier_raises(make_settings, rate_limiter) -> None:
    router = Router(make_settings(), rate_limiter)

    with pytest.raises(InvalidTierException):
        router.resolve_chain("legendary")


def test_unresolvable_names_are_skipped(make_settings, rate_limiter) -> None:
    settings = make_settings({"minor": ["A", "ghost-profile", "B"]}, ["A", "B"])
    router = Router(settings, rate_limiter)

    assert [p.name for p in router.resolve_chain(Tier.MINOR)] == ["A", "B"]


def test_fuzzy_match_resolves_near_names(make_settings, rate_limiter) -> None:
    settings = make_settings({"major": ["openrouter"]}, ["OpenRouter-Main", "claude"])
    router = Router(settings, rate_limiter)

    assert [p.name for p in router.resolve_chain(Tier.MAJOR)] == ["OpenRouter-Main"]


def test_fuzzy_match_can_be_disabled(make_settings, rate_limiter) -> None:
    settings = make_settings({"major": ["openrouter"]}, ["OpenRouter-Main"])
    router = Router(settings, rate_limiter, fuzzy_matcher=None)

    assert router.resolve_chain(Tier.MAJOR) == []


def test_settings_provider_is_read_on_every_resolution(make_settings, rate_limiter) -> None:
    current = {"settings": make_settings({"major": ["A"]}, ["A", "B"])}
    router = Router(lambda: current["settings"], rate_limiter)
    assert [p.name for p in router.resolve_chain("major")] == ["A"]

    current["settings"] = make_settings({"major": ["B"]}, ["A", "B"])
    assert [p.name for p in router.resolve_chain("major")] == ["B"]


def test_next_available_skips_limited_profiles(make_settings, rate_limiter) -> None:
    router = Router(make_settings({"major": ["A", "B", "C"]}, ["A", "B", "C"]), rate_limiter)
    chain = router.resolve_chain(Tier.MAJOR)
    rate_limiter.record_rate_limit("A", 10)

    selection = router.next_available(chain)

    assert selection.profile is not None
    assert selection.profile.name == "B"
    assert selection.index == 1
    assert [s.name for s in selection.skipped] == ["A"]
    assert selection.skipped[0].reason == "Rate limited, retry in 10s"
    assert selection.exhausted is False


def test_next_available_reports_exhaustion(make_settings, rate_limiter) -> None:
    router = Router(make_settings({"major": ["A", "B"]}, ["A", "B"]), rate_limiter)
    chain = router.resolve_chain(Tier.MAJOR)
    rate_limiter.record_rate_limit("A")
    rate_limiter.record_rate_limit("B")

    selection = router.next_available(chain)

    assert selection.profile is None
    assert selection.exhausted is True
    assert [s.name for s in selection.skipped] == ["A", "B"]


def test_next_available_on_empty_chain_is_not_exhausted(make_settings, rate_limiter) -> None:
    router = Router(make_settings(), rate_limiter)

    selection = router.next_available([])

    assert selection.profile is None
    assert selection.exhausted is False


def test_next_available_honors_start_index(make_settings, rate_limiter) -> None:
    router = Router(make_settings({"major": ["A", "B"]}, ["A", "B"]), rate_limiter)
    chain = router.resolve_chain(Tier.MAJOR)

    assert router.next_available(chain, 1).profile.name == "B"
    assert router.next_available(chain, 2).profile is None


def test_set_tier_profiles_normalizes_legacy_string(make_settings, rate_limiter) -> None:
    settings = make_settings({}, ["A", "B"])
    router = Router(settings, rate_limiter)

    assert router.set_tier_profiles("utility", "A") is True
    assert settings.tier_profiles[Tier.UTILITY] == ["A"]

    assert router.set_tier_profiles(Tier.UTILITY, "") is True
    assert settings.tier_profiles[Tier.UTILITY] == []

    assert router.set_tier_profiles("mythic", ["A"]) is False


def test_set_tier_fallback_chain_requires_list(make_settings, rate_limiter) -> None:
    settings = make_settings({}, ["A", "B"])
    router = Router(settings, rate_limiter)

    assert router.set_tier_fallback_chain("major", "A") is False
    assert router.set_tier_fallback_chain("major", ["B", "A"]) is True
    assert router.profile_for_tier("major").name == "B"


def test_available_profile_names_sorted(make_settings, rate_limiter) -> None:
    router = Router(make_settings({}, ["zeta", "alpha", "Mid"]), rate_limiter)

    assert router.available_profile_names() == ["Mid", "alpha", "zeta"]
