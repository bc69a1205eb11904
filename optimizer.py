# optimizer.py
#
# Assignment Optimizer: fill a league's starting slots with the set of
# candidates worth the most points.
#
# Flex slots overlap (a RB fits RB, FLEX and SUPER_FLEX), so filling slots one
# at a time with the best remaining player can strand value: fill FLEX with a
# RB first and the spare QB has nowhere to go. Instead we solve the whole thing
# as a maximum-weight bipartite matching (slot instances x candidates) with the
# Hungarian algorithm. Leagues have ~20 slots and well under 100 candidates, so
# the O(slots^2 * candidates) solve is effectively instant.

from __future__ import annotations

import logging
import math
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from models import (  # type: ignore[import]
    Availability,
    Candidate,
    OptimizationResult,
    SlotAssignment,
    SlotCapacity,
)
from slot_rules import normalize_slot, slot_positions  # type: ignore[import]

logger = logging.getLogger(__name__)

# Values are compared in thousandths of a point.
VALUE_SCALE = 1000


class AssignmentInvariantError(AssertionError):
    """An assignment broke eligibility or one-player-one-slot. Optimizer bug."""


def eligible(candidate: Candidate, slot: str) -> bool:
    """Return True if a candidate can fill a given slot type."""
    accepted = slot_positions(slot)
    return any(pos in accepted for pos in candidate.positions)


def _hungarian(cost: List[List[Optional[int]]]) -> List[int]:
    """
    Minimum-cost assignment of every row to a distinct column.

    `cost[i][j]` is None where row i may not take column j. Requires
    len(rows) <= len(columns) and at least one feasible perfect matching on
    the rows. Returns the chosen column index for each row.

    Classic potentials formulation (Kuhn-Munkres with Dijkstra-like row
    insertion), kept in exact integer arithmetic so tie-break weights survive.
    """
    n = len(cost)
    if n == 0:
        return []
    m = len(cost[0])

    u = [0] * (n + 1)
    v = [0] * (m + 1)
    p = [0] * (m + 1)      # p[j] = row matched to column j (1-based, 0 = free)
    way = [0] * (m + 1)

    for i in range(1, n + 1):
        p[0] = i
        j0 = 0
        minv: List[Optional[int]] = [None] * (m + 1)
        used = [False] * (m + 1)
        while True:
            used[j0] = True
            i0 = p[j0]
            row = cost[i0 - 1]
            delta: Optional[int] = None
            j1 = 0
            for j in range(1, m + 1):
                if used[j]:
                    continue
                c = row[j - 1]
                if c is not None:
                    cur = c - u[i0] - v[j]
                    if minv[j] is None or cur < minv[j]:
                        minv[j] = cur
                        way[j] = j0
                if minv[j] is not None and (delta is None or minv[j] < delta):
                    delta = minv[j]
                    j1 = j
            if delta is None:
                raise AssignmentInvariantError("no feasible column for slot row")
            for j in range(m + 1):
                if used[j]:
                    u[p[j]] += delta
                    v[j] -= delta
                elif minv[j] is not None:
                    minv[j] -= delta
            j0 = j1
            if p[j0] == 0:
                break
        while True:
            j1 = way[j0]
            p[j0] = p[j1]
            j0 = j1
            if j0 == 0:
                break

    result = [-1] * n
    for j in range(1, m + 1):
        if p[j]:
            result[p[j] - 1] = j - 1
    return result


def _dedupe(candidates: Iterable[Candidate]) -> List[Candidate]:
    seen = set()
    out: List[Candidate] = []
    for c in candidates:
        if c.player_id in seen:
            continue
        seen.add(c.player_id)
        out.append(c)
    return out


def _pin_locked(
    instances: List[Tuple[str, int]],
    pool: List[Candidate],
) -> Tuple[Dict[Tuple[str, int], Candidate], List[Candidate]]:
    """
    Locked starters keep their slot; locked non-starters can't come in.

    Returns (pinned instance -> candidate, remaining unlocked pool).
    """
    pinned: Dict[Tuple[str, int], Candidate] = {}
    free: List[Candidate] = []
    for c in pool:
        if not c.locked:
            free.append(c)
            continue
        if c.current_slot is None:
            continue
        slot = normalize_slot(c.current_slot)
        target = next(
            (inst for inst in instances if inst[0] == slot and inst not in pinned),
            None,
        )
        if target is None or not eligible(c, slot):
            logger.warning(
                "Locked starter %s has no %s slot to keep; leaving them out", c.name, slot
            )
            continue
        pinned[target] = c
    return pinned, free


def _weights(
    rows: List[Tuple[str, int]],
    pool: List[Candidate],
    incumbents: FrozenSet[str],
) -> List[List[Optional[int]]]:
    """
    Integer edge weights encoding, in priority order:
      1. value, in thousandths of a point;
      2. keeping current starters (more so in the same slot type);
      3. earlier position in the candidate list.
    Each tier is scaled above the largest possible sum of the tiers below it,
    so the matching maximizes them lexicographically.
    """
    n = len(pool)
    order_bits = n
    churn_scale = 1 << order_bits
    value_scale = 1 << (order_bits + (2 * len(rows)).bit_length() + 1)

    weights: List[List[Optional[int]]] = []
    for slot, _ordinal in rows:
        row: List[Optional[int]] = []
        for idx, c in enumerate(pool):
            if not eligible(c, slot):
                row.append(None)
                continue
            key = int(round(c.value * VALUE_SCALE))
            if c.player_id not in incumbents:
                churn = 0
            elif c.current_slot is not None and normalize_slot(c.current_slot) == slot:
                churn = 2
            else:
                churn = 1
            row.append(key * value_scale + churn * churn_scale + (1 << (n - 1 - idx)))
        weights.append(row)
    return weights


def optimize(
    capacity: SlotCapacity,
    candidates: Sequence[Candidate],
    incumbents: Iterable[str] = (),
    respect_locks: bool = True,
) -> OptimizationResult:
    """
    Value-maximizing assignment of candidates to slot instances.

    Each slot instance holds at most one candidate, each candidate fills at
    most one instance, and only where the slot type accepts one of the
    candidate's positions. Instances nobody can (profitably) fill stay empty.

    Ties on value go to incumbents (player ids; defaults to every candidate
    with a current_slot), then to earlier candidates in the input. With
    respect_locks, a LOCKED starter stays in their slot type and a LOCKED
    bench player or free agent is never brought in.
    """
    instances = capacity.instances()
    pool = _dedupe(candidates)
    keep = frozenset(incumbents) or frozenset(
        c.player_id for c in pool if c.current_slot is not None
    )

    if respect_locks:
        pinned, pool = _pin_locked(instances, pool)
    else:
        pinned = {}

    rows = [inst for inst in instances if inst not in pinned]
    chosen: Dict[Tuple[str, int], Candidate] = dict(pinned)

    if rows:
        weights = _weights(rows, pool, keep)
        # One "leave empty" column per row keeps every row feasible at weight 0.
        n_rows = len(rows)
        cost: List[List[Optional[int]]] = []
        for r, row in enumerate(weights):
            dummies: List[Optional[int]] = [0 if k == r else None for k in range(n_rows)]
            cost.append([None if w is None else -w for w in row] + dummies)
        picks = _hungarian(cost)
        for inst, col in zip(rows, picks):
            if 0 <= col < len(pool):
                chosen[inst] = pool[col]

    assignment = tuple(
        SlotAssignment(slot=slot, ordinal=ordinal, candidate=chosen.get((slot, ordinal)))
        for slot, ordinal in instances
    )
    total = math.fsum(s.candidate.value for s in assignment if s.candidate is not None)
    return OptimizationResult(assignment=assignment, total=total)


def assignment_from_lineup(
    slots: Sequence[str],
    starters: Sequence[Optional[Candidate]],
) -> OptimizationResult:
    """
    The platform-reported lineup, verbatim: starters[i] sits in slots[i].

    Missing trailing starters are empty slots.
    """
    seen: Dict[str, int] = {}
    out: List[SlotAssignment] = []
    for i, raw_slot in enumerate(slots):
        slot = normalize_slot(raw_slot)
        ordinal = seen.get(slot, 0)
        seen[slot] = ordinal + 1
        cand = starters[i] if i < len(starters) else None
        out.append(SlotAssignment(slot=slot, ordinal=ordinal, candidate=cand))
    total = math.fsum(s.candidate.value for s in out if s.candidate is not None)
    return OptimizationResult(assignment=tuple(out), total=total)


def validate_assignment(result: OptimizationResult, capacity: SlotCapacity) -> None:
    """Raise AssignmentInvariantError if the result breaks slot rules."""
    used: Dict[str, int] = {}
    seen_players = set()
    for s in result.assignment:
        used[s.slot] = used.get(s.slot, 0) + 1
        if used[s.slot] > capacity[s.slot]:
            raise AssignmentInvariantError(f"too many {s.slot} instances")
        c = s.candidate
        if c is None:
            continue
        if c.player_id in seen_players:
            raise AssignmentInvariantError(f"{c.name} assigned twice")
        seen_players.add(c.player_id)
        if not eligible(c, s.slot):
            raise AssignmentInvariantError(f"{c.name} ({c.position}) cannot fill {s.slot}")
        if c.tag in (Availability.OUT, Availability.BYE) and c.value != 0.0:
            raise AssignmentInvariantError(f"{c.name} is {c.tag.value} but worth {c.value}")
