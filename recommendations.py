# recommendations.py
#
# Turn optimizer results into moves a manager can act on:
# - bench -> starter promotions (with who sits down)
# - free agent -> starter upgrades off the waiver wire
# - the same waiver upgrades grouped per free agent
# - bench fallbacks for questionable starters (auto-subs)

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from availability import kickoff  # type: ignore[import]
from models import (  # type: ignore[import]
    AutoSub,
    AutoSubOption,
    Availability,
    BenchMove,
    Candidate,
    GameInfo,
    OptimizationResult,
    SlotAssignment,
    WaiverGroup,
    WaiverSuggestion,
)
from optimizer import eligible  # type: ignore[import]
from config import (  # type: ignore[import]
    MAX_AUTO_SUBS,
    MAX_FA_PER_POSITION,
    WAIVER_EXCLUDED_POSITIONS,
    WAIVER_MIN_GAIN,
)

logger = logging.getLogger(__name__)

# Free agents in these states can't help this week.
UNUSABLE_TAGS = frozenset({Availability.LOCKED, Availability.OUT, Availability.BYE})


# ---------------------------------------------------------------------------
# Bench moves
# ---------------------------------------------------------------------------


def build_bench_moves(
    current: OptimizationResult,
    bench_optimal: OptimizationResult,
) -> List[BenchMove]:
    """
    Promotions (bench-optimal starters not currently starting), each paired
    with the demotion (current starter not in bench-optimal) that yields the
    biggest gain.

    Promotions are handled best first. Once demotions run out, a promotion
    fills a slot that was empty and carries no outgoing player.
    """
    current_ids = current.player_ids()
    optimal_ids = bench_optimal.player_ids()

    promotions = [c for c in bench_optimal.candidates() if c.player_id not in current_ids]
    promotions.sort(key=lambda c: -c.value)
    demotions = [c for c in current.candidates() if c.player_id not in optimal_ids]

    moves: List[BenchMove] = []
    for promo in promotions:
        target = bench_optimal.slot_of(promo.player_id)
        slot = target.label if target is not None else promo.position

        outgoing: Optional[Candidate] = None
        if demotions:
            outgoing = min(demotions, key=lambda d: d.value)
            demotions.remove(outgoing)

        gain = promo.value - (outgoing.value if outgoing is not None else 0.0)
        moves.append(BenchMove(incoming=promo, outgoing=outgoing, slot=slot, gain=gain))

    return moves


# ---------------------------------------------------------------------------
# Free-agent pool
# ---------------------------------------------------------------------------


def _usable_free_agent(
    fa: Candidate,
    owned_ids: Set[str],
    excluded_positions: Iterable[str],
) -> bool:
    if fa.player_id in owned_ids:
        return False
    if fa.tag in UNUSABLE_TAGS:
        return False
    return fa.position not in set(excluded_positions)


def build_free_agent_pool(
    free_agents: Iterable[Candidate],
    owned_ids: Iterable[str] = (),
    excluded_positions: Iterable[str] = WAIVER_EXCLUDED_POSITIONS,
    per_position: int = MAX_FA_PER_POSITION,
) -> List[Candidate]:
    """
    The free agents worth feeding to the optimizer: unowned, able to play
    this week, not an excluded position, and at most `per_position` of each
    position by value. Ordered by value, then player id.
    """
    owned = set(owned_ids)
    excluded = frozenset(excluded_positions)
    by_pos: Dict[str, List[Candidate]] = {}
    for fa in free_agents:
        if not _usable_free_agent(fa, owned, excluded):
            continue
        by_pos.setdefault(fa.position, []).append(fa)

    pool: List[Candidate] = []
    for players in by_pos.values():
        players.sort(key=lambda c: (-c.value, c.player_id))
        pool.extend(players[:per_position])

    pool.sort(key=lambda c: (-c.value, c.player_id))
    return pool


# ---------------------------------------------------------------------------
# Waiver suggestions
# ---------------------------------------------------------------------------


def _occupant_value(s: SlotAssignment) -> float:
    return s.candidate.value if s.candidate is not None else 0.0


def build_waiver_suggestions(
    bench_optimal: OptimizationResult,
    free_agents: Sequence[Candidate],
    owned_ids: Iterable[str] = (),
    min_gain: float = WAIVER_MIN_GAIN,
    excluded_positions: Iterable[str] = WAIVER_EXCLUDED_POSITIONS,
) -> List[WaiverSuggestion]:
    """
    One waiver upgrade per slot instance at most, and each free agent
    suggested at most once.

    Slots are visited weakest occupant first (empty slots count as zero), so
    the best free agent goes where it gains the most. A suggestion is kept
    only when it beats the occupant by at least `min_gain` points.
    """
    owned = set(owned_ids)
    excluded = frozenset(excluded_positions)
    usable = [fa for fa in free_agents if _usable_free_agent(fa, owned, excluded)]

    slots = sorted(bench_optimal.assignment, key=_occupant_value)
    suggested: Set[str] = set()
    out: List[WaiverSuggestion] = []

    for s in slots:
        if s.candidate is not None and s.candidate.locked:
            continue
        best: Optional[Candidate] = None
        for fa in usable:
            if fa.player_id in suggested or not eligible(fa, s.slot):
                continue
            if best is None or fa.value > best.value:
                best = fa
        if best is None:
            continue
        gain = best.value - _occupant_value(s)
        if gain < min_gain:
            continue
        suggested.add(best.player_id)
        out.append(WaiverSuggestion(incoming=best, outgoing=s.candidate, slot=s.label, gain=gain))

    out.sort(key=lambda w: -w.gain)
    logger.debug("%d waiver suggestions from %d free agents", len(out), len(usable))
    return out


def group_waiver_suggestions(
    suggestions: Sequence[WaiverSuggestion],
    bench_optimal: OptimizationResult,
    min_gain: float = WAIVER_MIN_GAIN,
    limit: Optional[int] = None,
) -> List[WaiverGroup]:
    """
    Group by free agent: the chosen suggestion plus every other slot the same
    player would also upgrade by at least `min_gain`, best gain first.
    """
    groups: List[WaiverGroup] = []
    for best in suggestions:
        fa = best.incoming
        alternatives: List[WaiverSuggestion] = []
        for s in bench_optimal.assignment:
            if s.label == best.slot or not eligible(fa, s.slot):
                continue
            if s.candidate is not None and s.candidate.locked:
                continue
            gain = fa.value - _occupant_value(s)
            if gain >= min_gain:
                alternatives.append(
                    WaiverSuggestion(incoming=fa, outgoing=s.candidate, slot=s.label, gain=gain)
                )
        alternatives.sort(key=lambda w: -w.gain)
        groups.append(WaiverGroup(incoming=fa, best=best, alternatives=tuple(alternatives)))

    groups.sort(key=lambda g: -g.best_gain)
    if limit is not None:
        groups = groups[:limit]
    return groups


# ---------------------------------------------------------------------------
# Auto-subs
# ---------------------------------------------------------------------------

# Bench players in these states can't come in for anyone.
NO_SUB_TAGS = frozenset({Availability.LOCKED, Availability.OUT, Availability.BYE, Availability.EMPTY})


def _auto_sub_reason(
    sub: Candidate,
    gain: float,
    starter_kick: Optional[datetime],
    sub_kick: Optional[datetime],
    require_later_start: bool,
) -> str:
    reason = f"Proj {sub.value:.1f}"
    if gain > 0:
        reason += f" (+{gain:.1f} vs starter)"
    if require_later_start and starter_kick is not None and sub_kick is not None:
        hours = (sub_kick - starter_kick).total_seconds() / 3600
        if hours > 0:
            reason += f"; plays {hours:.1f}h later"
    return reason


def build_auto_subs(
    current: OptimizationResult,
    bench_pool: Iterable[Candidate],
    schedule: Mapping[str, GameInfo],
    require_later_start: bool = False,
    per_starter: int = MAX_AUTO_SUBS,
) -> List[AutoSub]:
    """
    Fallbacks for each QUESTIONABLE starter in the current lineup: the best
    `per_starter` bench players eligible for that starter's slot, by value
    then player id.

    With `require_later_start` a sub whose game kicks off before the
    starter's is dropped; an unknown kickoff on either side never excludes.
    Starters with no eligible sub are left out.
    """
    starting = current.player_ids()
    bench = [
        c for c in bench_pool
        if c.player_id not in starting and not c.is_free_agent and c.tag not in NO_SUB_TAGS
    ]

    out: List[AutoSub] = []
    for s in current.assignment:
        starter = s.candidate
        if starter is None or starter.tag != Availability.QUESTIONABLE:
            continue
        starter_kick = kickoff(starter.team, schedule)

        options: List[AutoSubOption] = []
        for sub in sorted(bench, key=lambda c: (-c.value, c.player_id)):
            if not eligible(sub, s.slot):
                continue
            sub_kick = kickoff(sub.team, schedule)
            if (
                require_later_start
                and starter_kick is not None
                and sub_kick is not None
                and sub_kick < starter_kick
            ):
                continue
            gain = sub.value - starter.value
            reason = _auto_sub_reason(sub, gain, starter_kick, sub_kick, require_later_start)
            options.append(AutoSubOption(candidate=sub, gain=gain, reason=reason))
            if len(options) >= per_starter:
                break

        if options:
            out.append(AutoSub(starter=starter, slot=s.label, options=tuple(options)))

    logger.debug("%d questionable starters with auto-sub options", len(out))
    return out
