"""Fee tiers and the single-selection policy over the annual fee table.

The table is shown as independent toggles but behaves like a radio group:
at most one tier is selected at any time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from membership_bot.form_state import FormState

logger = logging.getLogger(__name__)

# Stays selectable while the GTIN-8 path is active
ALWAYS_ENABLED_TIER = "500 GTINs"

# Row highlight after a toggle: 100 ms before the change + 300 ms after
TRANSITION_SECONDS = 0.4


@dataclass(frozen=True)
class FeeTier:
    key: str
    label: str
    base_fee: int
    pra: int
    total: int


FEE_TIERS: Tuple[FeeTier, ...] = (
    FeeTier("1 GLN", "1 GTIN-13 / GLN", 8723, 1396, 10119),
    FeeTier("10 GTINs", "10 GTIN-13s", 8723, 1396, 10119),
    FeeTier("100 GTINs", "100 GTIN-13s", 13957, 2233, 16190),
    FeeTier("300 GTINs", "300 GTIN-13s", 17445, 2793, 20238),
    FeeTier("500 GTINs", "500 GTIN-13s", 26167, 4188, 30355),
    FeeTier("1000 GTINs", "1,000 GTIN-13s", 34875, 5599, 40474),
)

FEE_TIERS_BY_KEY: Dict[str, FeeTier] = {t.key: t for t in FEE_TIERS}

# Informational only, entrance fees are not selectable
ENTRANCE_FEES: Tuple[FeeTier, ...] = (
    FeeTier("entrance-10", "For 10 GTIN-13s", 20934, 3349, 24284),
    FeeTier("entrance-above-10", "Above 10 GTIN-13s (50% of Normal Entrance Fee)", 41870, 6699, 48569),
    FeeTier("entrance-1", "For 1 GTIN-13s / GLN", 20934, 3349, 24284),
)


@dataclass(frozen=True)
class FeeCategory:
    name: str
    description: str
    entrance: Tuple[FeeTier, ...]
    annual: Tuple[FeeTier, ...]


# Published price list per membership category; only General is applied for here
FEE_CATEGORIES: Tuple[FeeCategory, ...] = (
    FeeCategory(
        "General",
        "For general products and services registration",
        ENTRANCE_FEES,
        FEE_TIERS,
    ),
    FeeCategory(
        "Healthcare",
        "For healthcare-related products and medical devices",
        (
            FeeTier("healthcare-1", "Healthcare 1 GTIN", 25000, 4000, 29000),
            FeeTier("healthcare-10", "Healthcare 10 GTINs", 40000, 6400, 46400),
        ),
        (
            FeeTier("healthcare-annual-1", "Healthcare Annual 1 GTIN", 10000, 1600, 11600),
            FeeTier("healthcare-annual-10", "Healthcare Annual 10 GTINs", 15000, 2400, 17400),
        ),
    ),
    FeeCategory(
        "UDI",
        "For Unique Device Identification products",
        (FeeTier("udi-base", "UDI Base Fee", 30000, 4800, 34800),),
        (FeeTier("udi-annual", "UDI Annual Fee", 12000, 1920, 13920),),
    ),
    FeeCategory(
        "Textile",
        "For textile products and garment industry",
        (
            FeeTier("textile-1", "Textile 1 GTIN", 18000, 2880, 20880),
            FeeTier("textile-bulk", "Textile Bulk GTINs", 36000, 5760, 41760),
        ),
        (
            FeeTier("textile-annual-1", "Textile Annual 1 GTIN", 8000, 1280, 9280),
            FeeTier("textile-annual-bulk", "Textile Annual Bulk", 16000, 2560, 18560),
        ),
    ),
)


def format_pkr(amount: int) -> str:
    return f"PKR {amount:,}"


def is_tier_enabled(state: FormState, fee: str) -> bool:
    if fee == ALWAYS_ENABLED_TIER:
        return True
    return not state.gtin8_required


class FeeSelectionPolicy:
    """Toggle semantics for the fee table plus a short-lived row marker."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._transitions: Dict[str, float] = {}

    def toggle(self, state: FormState, fee: str) -> Tuple[bool, List[str]]:
        """Return ``(accepted, new_selection)`` for a click on ``fee``.

        Clicking the selected tier clears the selection; clicking any other
        tier replaces it. Disabled tiers leave the selection unchanged.
        """
        if fee not in FEE_TIERS_BY_KEY:
            raise ValueError(f"Unknown fee tier: {fee!r}")

        current = list(state.selected_fees)
        if not is_tier_enabled(state, fee):
            logger.debug("Fee tier %s is disabled on the GTIN-8 path", fee)
            return False, current

        self._transitions[fee] = self._clock() + TRANSITION_SECONDS
        selection = [] if fee in current else [fee]
        return True, selection

    def is_transitioning(self, fee: str) -> bool:
        deadline = self._transitions.get(fee)
        if deadline is None:
            return False
        if self._clock() >= deadline:
            del self._transitions[fee]
            return False
        return True
