import random

import pytest

from membership_bot.fees import (
    ALWAYS_ENABLED_TIER,
    FEE_TIERS,
    TRANSITION_SECONDS,
    FeeSelectionPolicy,
    format_pkr,
    is_tier_enabled,
)
from membership_bot.form_state import FormState


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _apply(policy: FeeSelectionPolicy, state: FormState, fee: str) -> FormState:
    accepted, selection = policy.toggle(state, fee)
    if accepted:
        state = state.model_copy(update={"selected_fees": selection})
    return state


def test_selecting_another_tier_replaces_the_selection():
    policy = FeeSelectionPolicy()
    state = _apply(policy, FormState(), "10 GTINs")
    state = _apply(policy, state, "300 GTINs")
    assert state.selected_fees == ["300 GTINs"]


def test_selecting_the_same_tier_twice_clears_it():
    policy = FeeSelectionPolicy()
    state = _apply(policy, FormState(), "10 GTINs")
    state = _apply(policy, state, "10 GTINs")
    assert state.selected_fees == []


def test_selection_never_exceeds_one_tier():
    policy = FeeSelectionPolicy()
    rng = random.Random(7)
    keys = [t.key for t in FEE_TIERS]
    state = FormState()
    for _ in range(200):
        if rng.random() < 0.2:
            state = state.model_copy(update={"gtin8s_required": rng.choice(["yes", "no"])})
        state = _apply(policy, state, rng.choice(keys))
        assert len(state.selected_fees) <= 1


def test_gtin8_path_disables_all_tiers_but_500():
    state = FormState(gtin8s_required="yes")
    enabled = [t.key for t in FEE_TIERS if is_tier_enabled(state, t.key)]
    assert enabled == [ALWAYS_ENABLED_TIER]

    policy = FeeSelectionPolicy()
    accepted, selection = policy.toggle(state, "100 GTINs")
    assert not accepted
    assert selection == []
    accepted, selection = policy.toggle(state, "500 GTINs")
    assert accepted
    assert selection == ["500 GTINs"]


def test_disabled_tier_click_keeps_existing_selection():
    state = FormState(gtin8s_required="yes", selected_fees=["500 GTINs"])
    accepted, selection = FeeSelectionPolicy().toggle(state, "1 GLN")
    assert not accepted
    assert selection == ["500 GTINs"]


def test_unknown_tier_is_rejected():
    with pytest.raises(ValueError):
        FeeSelectionPolicy().toggle(FormState(), "7 GTINs")


def test_transition_marker_expires():
    clock = FakeClock()
    policy = FeeSelectionPolicy(clock=clock)
    assert not policy.is_transitioning("10 GTINs")
    policy.toggle(FormState(), "10 GTINs")
    assert policy.is_transitioning("10 GTINs")
    assert not policy.is_transitioning("100 GTINs")
    clock.now += TRANSITION_SECONDS
    assert not policy.is_transitioning("10 GTINs")


def test_format_pkr():
    assert format_pkr(30355) == "PKR 30,355"
