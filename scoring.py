# scoring.py
#
# Scoring Adapter: turn a projected stat line into league points using the
# league's own scoring-rule table (points per stat, e.g. rec = 1.0 for PPR).

from __future__ import annotations

import math
from typing import Mapping, Optional

from slot_rules import normalize_position  # type: ignore[import]

# Per-position reception bonuses (TE premium and friends) scale `rec`.
POSITION_REC_BONUS = {
    "RB": "bonus_rec_rb",
    "WR": "bonus_rec_wr",
    "TE": "bonus_rec_te",
}


def score(
    position: str,
    stat_line: Optional[Mapping[str, float]],
    scoring_rules: Optional[Mapping[str, float]],
    fallback_projection: float = 0.0,
) -> float:
    """
    League-adjusted points for one player.

    Sums stat_line[stat] * rule for every rule the league defines; stats the
    league doesn't score are ignored. Without a stat line (or rules to apply to
    it) the fallback projection is returned unmodified, and the same happens
    when the stat line and the rule table don't overlap at all (score of
    exactly zero) so a bare projection isn't wiped out.
    """
    if not stat_line or not scoring_rules:
        return fallback_projection

    total = 0.0
    for stat, multiplier in scoring_rules.items():
        value = stat_line.get(stat)
        if value is None:
            continue
        try:
            total += float(value) * float(multiplier)
        except (TypeError, ValueError):
            continue

    bonus_key = POSITION_REC_BONUS.get(normalize_position(position))
    if bonus_key and bonus_key in scoring_rules:
        try:
            total += float(stat_line.get("rec", 0.0) or 0.0) * float(scoring_rules[bonus_key])
        except (TypeError, ValueError):
            pass

    if not math.isfinite(total) or total == 0.0:
        return fallback_projection
    return total


def format_label(scoring_rules: Optional[Mapping[str, float]]) -> str:
    """PPR / Half / Std, from the points-per-reception rule."""
    rec = (scoring_rules or {}).get("rec", 0.0) or 0.0
    if rec >= 1.0:
        return "PPR"
    if rec >= 0.5:
        return "Half"
    return "Std"
