"""Tests for optimizer module."""

import random
from dataclasses import replace
from typing import List, Sequence, Tuple

import pytest

from models import Availability, Candidate, OptimizationResult, SlotAssignment, Source
from optimizer import (
    AssignmentInvariantError,
    assignment_from_lineup,
    eligible,
    optimize,
    validate_assignment,
)
from recommendations import build_bench_moves
from slot_rules import build_slot_capacity


def _brute_force_total(instances: Sequence[Tuple[str, int]], pool: Sequence[Candidate]) -> float:
    """Best total over every legal assignment, by exhaustive search."""
    best = 0.0

    def walk(i: int, used: frozenset, total: float) -> None:
        nonlocal best
        if i == len(instances):
            best = max(best, total)
            return
        walk(i + 1, used, total)
        slot = instances[i][0]
        for c in pool:
            if c.player_id not in used and eligible(c, slot):
                walk(i + 1, used | {c.player_id}, total + c.value)

    walk(0, frozenset(), 0.0)
    return best


class TestEligible:
    """Test slot eligibility for candidates."""

    def test_base_slot_requires_exact_position(self, make_candidate) -> None:
        """A RB fills RB but not WR."""
        rb = make_candidate("rb", "RB", 10.0)
        assert eligible(rb, "RB")
        assert not eligible(rb, "WR")

    def test_flex_slots(self, make_candidate) -> None:
        """FLEX takes RB/WR/TE; SUPER_FLEX adds QB."""
        qb = make_candidate("qb", "QB", 20.0)
        te = make_candidate("te", "TE", 8.0)
        assert eligible(te, "FLEX")
        assert not eligible(qb, "FLEX")
        assert eligible(qb, "SUPER_FLEX")
        assert eligible(qb, "OP")

    def test_alt_positions(self, make_candidate) -> None:
        """A player listed at RB and WR may fill either."""
        hybrid = make_candidate("h", "RB", 10.0, alt_positions=("WR",))
        assert eligible(hybrid, "WR")


class TestOptimize:
    """Test the value-maximizing assignment."""

    def test_flex_takes_best_leftover(self, make_candidate) -> None:
        """QB, 2 RB and FLEX: the WR beats the third RB for FLEX."""
        capacity = build_slot_capacity(["QB", "RB", "RB", "FLEX", "BN", "BN"])
        pool = [
            make_candidate("qb", "QB", 20.0),
            make_candidate("rb_a", "RB", 15.0),
            make_candidate("rb_b", "RB", 12.0),
            make_candidate("wr", "WR", 14.0),
            make_candidate("rb_c", "RB", 9.0),
        ]

        result = optimize(capacity, pool)

        assert result.total == pytest.approx(61.0)
        assert result.slot_of("wr").slot == "FLEX"
        assert {result.slot_of("rb_a").slot, result.slot_of("rb_b").slot} == {"RB"}
        assert result.slot_of("rb_c") is None

    def test_extra_qb_goes_to_super_flex(self, make_candidate) -> None:
        """Greedy FLEX-first filling would strand the second QB."""
        capacity = build_slot_capacity(["QB", "RB", "WR", "FLEX", "SUPER_FLEX"])
        pool = [
            make_candidate("rb1", "RB", 12.0),
            make_candidate("rb2", "RB", 10.0),
            make_candidate("wr1", "WR", 11.0),
            make_candidate("wr2", "WR", 9.0),
            make_candidate("qb1", "QB", 25.0),
            make_candidate("qb2", "QB", 18.0),
        ]

        result = optimize(capacity, pool)

        assert {result.slot_of("qb1").slot, result.slot_of("qb2").slot} == {"QB", "SUPER_FLEX"}
        assert result.total == pytest.approx(76.0)

    def test_every_instance_is_reported(self, make_candidate) -> None:
        """Unfillable instances come back empty, not missing."""
        capacity = build_slot_capacity(["QB", "RB", "RB", "K"])
        result = optimize(capacity, [make_candidate("rb", "RB", 5.0)])

        assert [s.label for s in result.assignment] == ["QB", "RB", "RB2", "K"]
        assert len(result.candidates()) == 1
        assert result.total == pytest.approx(5.0)

    def test_negative_value_left_on_bench(self, make_candidate) -> None:
        """An empty slot (0) beats a player projected below zero."""
        capacity = build_slot_capacity(["DEF"])
        result = optimize(capacity, [make_candidate("dst", "DEF", -2.0)])

        assert result.candidates() == []
        assert result.total == 0.0

    def test_out_player_counts_zero(self, make_candidate) -> None:
        """An OUT player only ever contributes zero."""
        capacity = build_slot_capacity(["QB", "TE"])
        pool = [
            make_candidate("qb", "QB", 20.0),
            make_candidate("te", "TE", 0.0, tag=Availability.OUT, projection=11.0),
        ]

        result = optimize(capacity, pool)

        assert result.total == pytest.approx(20.0)
        for c in result.candidates():
            if c.tag == Availability.OUT:
                assert c.value == 0.0

    def test_duplicate_candidates_used_once(self, make_candidate) -> None:
        """The same player listed twice still fills one slot."""
        capacity = build_slot_capacity(["RB", "RB"])
        rb = make_candidate("rb", "RB", 10.0)

        result = optimize(capacity, [rb, rb])

        assert len(result.candidates()) == 1
        assert result.total == pytest.approx(10.0)

    def test_empty_capacity(self, make_candidate) -> None:
        """No starting slots gives an empty, zero-total result."""
        result = optimize(build_slot_capacity(["BN", "IR"]), [make_candidate("rb", "RB", 10.0)])
        assert result.assignment == ()
        assert result.total == 0.0

    @pytest.mark.parametrize("seed", range(20))
    def test_matches_exhaustive_search(self, make_candidate, seed: int) -> None:
        """Total equals the brute-force optimum and the result is legal."""
        rng = random.Random(seed)
        capacity = build_slot_capacity(["QB", "RB", "WR", "FLEX", "SUPER_FLEX"])
        positions = ["QB", "RB", "WR", "TE", "K"]
        pool = [
            make_candidate(f"p{i}", rng.choice(positions), rng.randint(0, 300) / 10)
            for i in range(6)
        ]

        result = optimize(capacity, pool)

        validate_assignment(result, capacity)
        assert result.total == pytest.approx(_brute_force_total(capacity.instances(), pool))


class TestTieBreaks:
    """Test deterministic choice between equal-value players."""

    def test_incumbent_kept_on_tie(self, make_candidate) -> None:
        """Equal value: the current starter keeps the job."""
        capacity = build_slot_capacity(["RB"])
        pool = [
            make_candidate("bench_rb", "RB", 10.0),
            make_candidate("starter_rb", "RB", 10.0, source=Source.STARTER, current_slot="RB"),
        ]

        result = optimize(capacity, pool)

        assert result.player_ids() == frozenset({"starter_rb"})

    def test_same_slot_incumbent_preferred(self, make_candidate) -> None:
        """Between two incumbents, the one already in that slot type stays."""
        capacity = build_slot_capacity(["RB"])
        pool = [
            make_candidate("flex_rb", "RB", 10.0, current_slot="FLEX"),
            make_candidate("rb_rb", "RB", 10.0, current_slot="RB"),
        ]

        result = optimize(capacity, pool)

        assert result.player_ids() == frozenset({"rb_rb"})

    def test_input_order_breaks_remaining_ties(self, make_candidate) -> None:
        """No incumbents: the earlier candidate wins."""
        capacity = build_slot_capacity(["WR"])
        pool = [make_candidate("first", "WR", 10.0), make_candidate("second", "WR", 10.0)]

        assert optimize(capacity, pool).player_ids() == frozenset({"first"})
        assert optimize(capacity, pool[::-1]).player_ids() == frozenset({"second"})

    def test_sub_thousandth_difference_is_a_tie(self, make_candidate) -> None:
        """Values are compared to a thousandth of a point."""
        capacity = build_slot_capacity(["WR"])
        pool = [
            make_candidate("challenger", "WR", 10.0002),
            make_candidate("starter", "WR", 10.0, current_slot="WR"),
        ]

        assert optimize(capacity, pool).player_ids() == frozenset({"starter"})

    def test_explicit_incumbents(self, make_candidate) -> None:
        """Incumbents passed in override the current_slot default."""
        capacity = build_slot_capacity(["TE"])
        pool = [make_candidate("a", "TE", 7.0), make_candidate("b", "TE", 7.0)]

        assert optimize(capacity, pool, incumbents=["b"]).player_ids() == frozenset({"b"})


class TestLocks:
    """Test handling of players whose games have started."""

    def test_locked_starter_counts_actual_points(self, make_candidate) -> None:
        """A locked starter stays put and counts their actual score."""
        capacity = build_slot_capacity(["RB"])
        locked = make_candidate(
            "locked", "RB", 6.0, tag=Availability.LOCKED, source=Source.STARTER,
            current_slot="RB", projection=18.0,
        )
        bench = make_candidate("bench", "RB", 10.0)

        result = optimize(capacity, [locked, bench])

        assert result.player_ids() == frozenset({"locked"})
        assert result.total == pytest.approx(6.0)

    def test_locks_ignored_when_asked(self, make_candidate) -> None:
        """respect_locks=False frees the locked starter's slot."""
        capacity = build_slot_capacity(["RB"])
        locked = make_candidate(
            "locked", "RB", 6.0, tag=Availability.LOCKED, current_slot="RB", projection=18.0
        )
        bench = make_candidate("bench", "RB", 10.0)

        result = optimize(capacity, [locked, bench], respect_locks=False)

        assert result.player_ids() == frozenset({"bench"})
        assert result.total == pytest.approx(10.0)

    def test_locked_bench_player_cannot_come_in(self, make_candidate) -> None:
        """A locked non-starter is excluded however much they scored."""
        capacity = build_slot_capacity(["WR"])
        pool = [
            make_candidate("locked_bench", "WR", 30.0, tag=Availability.LOCKED),
            make_candidate("starter", "WR", 5.0, current_slot="WR"),
        ]

        result = optimize(capacity, pool)

        assert result.player_ids() == frozenset({"starter"})

    def test_locked_flex_starter_keeps_flex(self, make_candidate) -> None:
        """A locked starter is pinned to the slot type they occupy."""
        capacity = build_slot_capacity(["RB", "FLEX"])
        pool = [
            make_candidate("locked", "RB", 4.0, tag=Availability.LOCKED, current_slot="FLEX"),
            make_candidate("rb", "RB", 12.0),
        ]

        result = optimize(capacity, pool)

        assert result.slot_of("locked").slot == "FLEX"
        assert result.slot_of("rb").slot == "RB"
        assert result.total == pytest.approx(16.0)


class TestIdempotence:
    """Re-optimizing an optimal lineup changes nothing."""

    def test_reoptimizing_suggests_no_moves(self, make_candidate) -> None:
        capacity = build_slot_capacity(["QB", "RB", "RB", "WR", "FLEX", "SUPER_FLEX"])
        pool = [
            make_candidate("qb1", "QB", 22.0),
            make_candidate("qb2", "QB", 17.0),
            make_candidate("rb1", "RB", 14.0),
            make_candidate("rb2", "RB", 11.0),
            make_candidate("rb3", "RB", 8.0),
            make_candidate("wr1", "WR", 13.0),
            make_candidate("wr2", "WR", 12.0),
            make_candidate("te1", "TE", 9.0),
        ]
        first = optimize(capacity, pool)

        # Put the optimal lineup in as the current one.
        placed = {s.candidate.player_id: s.slot for s in first.assignment if s.candidate}
        current_pool = [
            replace(c, current_slot=placed.get(c.player_id)) for c in pool
        ]
        starters = [
            next(c for c in current_pool if c.player_id == s.candidate.player_id) if s.candidate else None
            for s in first.assignment
        ]
        current = assignment_from_lineup([s.slot for s in first.assignment], starters)

        second = optimize(capacity, current_pool)

        assert second.total == pytest.approx(first.total)
        assert second.player_ids() == first.player_ids()
        assert build_bench_moves(current, second) == []


class TestAssignmentFromLineup:
    """Test the platform lineup mapped as-is."""

    def test_labels_and_total(self, make_candidate) -> None:
        rb = make_candidate("rb", "RB", 9.0)
        wr = make_candidate("wr", "WR", 7.5)

        result = assignment_from_lineup(["RB", "RB", "FLEX"], [rb, None, wr])

        assert [s.label for s in result.assignment] == ["RB", "RB2", "FLEX"]
        assert result.assignment[1].candidate is None
        assert result.total == pytest.approx(16.5)

    def test_missing_trailing_starters_are_empty(self, make_candidate) -> None:
        result = assignment_from_lineup(["QB", "OP"], [make_candidate("qb", "QB", 20.0)])

        assert result.assignment[1].slot == "SUPER_FLEX"
        assert result.assignment[1].candidate is None


class TestValidateAssignment:
    """Test the invariant checks on optimizer output."""

    def _result(self, slots: List[SlotAssignment]) -> OptimizationResult:
        return OptimizationResult(
            assignment=tuple(slots),
            total=sum(s.candidate.value for s in slots if s.candidate),
        )

    def test_accepts_optimizer_output(self, make_candidate) -> None:
        capacity = build_slot_capacity(["QB", "RB", "FLEX"])
        result = optimize(capacity, [make_candidate("qb", "QB", 1.0), make_candidate("rb", "RB", 1.0)])
        validate_assignment(result, capacity)

    def test_ineligible_player(self, make_candidate) -> None:
        capacity = build_slot_capacity(["RB"])
        wr = make_candidate("wr", "WR", 10.0)

        with pytest.raises(AssignmentInvariantError):
            validate_assignment(self._result([SlotAssignment("RB", 0, wr)]), capacity)

    def test_player_used_twice(self, make_candidate) -> None:
        capacity = build_slot_capacity(["RB", "FLEX"])
        rb = make_candidate("rb", "RB", 10.0)

        with pytest.raises(AssignmentInvariantError, match="twice"):
            validate_assignment(
                self._result([SlotAssignment("RB", 0, rb), SlotAssignment("FLEX", 0, rb)]), capacity
            )

    def test_over_capacity(self, make_candidate) -> None:
        capacity = build_slot_capacity(["RB"])
        slots = [
            SlotAssignment("RB", 0, make_candidate("a", "RB", 1.0)),
            SlotAssignment("RB", 1, make_candidate("b", "RB", 1.0)),
        ]

        with pytest.raises(AssignmentInvariantError):
            validate_assignment(self._result(slots), capacity)

    def test_out_player_with_value(self, make_candidate) -> None:
        capacity = build_slot_capacity(["TE"])
        te = make_candidate("te", "TE", 8.0, tag=Availability.OUT)

        with pytest.raises(AssertionError):
            validate_assignment(self._result([SlotAssignment("TE", 0, te)]), capacity)
