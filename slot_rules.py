# slot_rules.py
#
# Slot eligibility rules shared by the optimizer and the recommendation
# builders, plus the Slot Model Builder that turns a league's roster-position
# list into a SlotCapacity table.

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List

from models import SlotCapacity  # type: ignore[import]

# Flex slot types and the base positions they accept. Any slot code not in
# this table only accepts a player whose position is that exact code.
FLEX_ELIGIBILITY: Dict[str, FrozenSet[str]] = {
    "FLEX": frozenset({"RB", "WR", "TE"}),
    "WRT": frozenset({"RB", "WR", "TE"}),
    "RB_WR_TE": frozenset({"RB", "WR", "TE"}),
    "WRTQ": frozenset({"QB", "RB", "WR", "TE"}),
    "SUPER_FLEX": frozenset({"QB", "RB", "WR", "TE"}),
    "REC_FLEX": frozenset({"WR", "TE"}),
    "WR_TE": frozenset({"WR", "TE"}),
    "RB_WR": frozenset({"RB", "WR"}),
    "IDP_FLEX": frozenset({"DL", "LB", "DB"}),
}

# Platform spellings -> canonical slot codes.
SLOT_ALIASES: Dict[str, str] = {
    "OP": "SUPER_FLEX",
    "SUPERFLEX": "SUPER_FLEX",
    "RB/WR/TE": "FLEX",
    "WR/RB/TE": "FLEX",
    "RB/WR": "RB_WR",
    "WR/TE": "REC_FLEX",
    "QB/RB/WR/TE": "SUPER_FLEX",
    "DP": "IDP_FLEX",
    "D/ST": "DEF",
    "DST": "DEF",
    "D": "DEF",
}

# Bench / reserve / taxi codes never count as starting slots.
NON_STARTING_SLOTS = frozenset({"BN", "BE", "BENCH", "IR", "RES", "TAXI"})

_DEF_SPELLINGS = frozenset({"DST", "D/ST", "DEF", "D"})


def normalize_position(pos: str) -> str:
    """Canonical player position: upper-case, every defense spelling -> DEF."""
    up = (pos or "").strip().upper()
    if up in _DEF_SPELLINGS:
        return "DEF"
    return up


def normalize_slot(code: str) -> str:
    up = (code or "").strip().upper()
    return SLOT_ALIASES.get(up, up)


def slot_positions(slot: str) -> FrozenSet[str]:
    """Base positions a slot type accepts."""
    code = normalize_slot(slot)
    return FLEX_ELIGIBILITY.get(code, frozenset({code}))


def slot_accepts(slot: str, position: str) -> bool:
    return normalize_position(position) in slot_positions(slot)


def eligible_slots(position: str, slots: Iterable[str]) -> List[str]:
    """The subset of `slots` that a player at `position` may fill, in order."""
    return [s for s in slots if slot_accepts(s, position)]


def interchangeable(pos_a: str, pos_b: str, slots: Iterable[str]) -> bool:
    """True if two positions compete for at least one of the given slot types."""
    slots = list(slots)
    return bool(set(eligible_slots(pos_a, slots)) & set(eligible_slots(pos_b, slots)))


def starting_slots(roster_positions: Iterable[str]) -> List[str]:
    """Normalized starting slot codes, in league order."""
    out: List[str] = []
    for code in roster_positions:
        slot = normalize_slot(code)
        if not slot or slot in NON_STARTING_SLOTS:
            continue
        out.append(slot)
    return out


def build_slot_capacity(roster_positions: Iterable[str]) -> SlotCapacity:
    """
    Count the starting slot types in a league's roster-position list.

    Bench, IR and taxi codes are dropped. Unknown codes are kept as their own
    single-position slot types so a player listed at that exact position can
    still fill them.
    """
    counts: Dict[str, int] = {}
    for slot in starting_slots(roster_positions):
        counts[slot] = counts.get(slot, 0) + 1
    return SlotCapacity(counts=tuple(counts.items()))
