"""Tests for slot_rules module."""

from slot_rules import (
    build_slot_capacity,
    eligible_slots,
    interchangeable,
    normalize_position,
    normalize_slot,
    slot_accepts,
    starting_slots,
)


class TestNormalization:
    """Test platform spellings mapped to canonical codes."""

    def test_defense_spellings(self) -> None:
        for raw in ("D/ST", "DST", "def", " D "):
            assert normalize_position(raw) == "DEF"

    def test_slot_aliases(self) -> None:
        assert normalize_slot("OP") == "SUPER_FLEX"
        assert normalize_slot("RB/WR/TE") == "FLEX"
        assert normalize_slot("wr/te") == "REC_FLEX"
        assert normalize_slot("flex") == "FLEX"


class TestBuildSlotCapacity:
    """Test the Slot Model Builder."""

    def test_counts_starting_slots_in_order(self) -> None:
        capacity = build_slot_capacity(
            ["QB", "RB", "RB", "WR", "WR", "TE", "FLEX", "K", "DEF", "BN", "BN", "BN", "IR"]
        )

        assert list(capacity) == ["QB", "RB", "WR", "TE", "FLEX", "K", "DEF"]
        assert capacity["RB"] == 2
        assert capacity["BN"] == 0
        assert capacity.total == 9

    def test_drops_bench_reserve_and_taxi(self) -> None:
        capacity = build_slot_capacity(["BN", "BE", "IR", "RES", "TAXI"])
        assert capacity.total == 0
        assert capacity.instances() == []

    def test_aliases_merge(self) -> None:
        """ESPN's OP and Sleeper's SUPER_FLEX are the same slot type."""
        capacity = build_slot_capacity(["QB", "OP", "SUPER_FLEX"])
        assert capacity.as_dict() == {"QB": 1, "SUPER_FLEX": 2}

    def test_unknown_slot_kept(self) -> None:
        """An unknown code stays a single-position slot."""
        capacity = build_slot_capacity(["QB", "P"])
        assert "P" in capacity
        assert slot_accepts("P", "P")

    def test_instances(self) -> None:
        capacity = build_slot_capacity(["RB", "WR", "RB"])
        assert capacity.instances() == [("RB", 0), ("RB", 1), ("WR", 0)]


class TestEligibility:
    """Test which positions fill which slots."""

    def test_flex_family(self) -> None:
        assert slot_accepts("FLEX", "TE")
        assert not slot_accepts("FLEX", "QB")
        assert slot_accepts("SUPER_FLEX", "QB")
        assert slot_accepts("REC_FLEX", "WR")
        assert not slot_accepts("REC_FLEX", "RB")
        assert slot_accepts("IDP_FLEX", "LB")

    def test_defense_fills_dst_slot(self) -> None:
        assert slot_accepts("D/ST", "DST")

    def test_eligible_slots_keeps_order(self) -> None:
        slots = starting_slots(["QB", "RB", "WR", "FLEX", "OP", "BN"])
        assert eligible_slots("RB", slots) == ["RB", "FLEX", "SUPER_FLEX"]
        assert eligible_slots("QB", slots) == ["QB", "SUPER_FLEX"]

    def test_interchangeable(self) -> None:
        slots = ["QB", "RB", "WR", "FLEX"]
        assert interchangeable("RB", "WR", slots)
        assert not interchangeable("QB", "RB", slots)
        assert interchangeable("QB", "RB", slots + ["SUPER_FLEX"])
