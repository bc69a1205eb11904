"""Tests for scoring module."""

import pytest

from scoring import format_label, score

PPR = {"pass_yd": 0.04, "pass_td": 4.0, "pass_int": -2.0, "rush_yd": 0.1, "rush_td": 6.0,
       "rec": 1.0, "rec_yd": 0.1, "rec_td": 6.0}


class TestScore:
    """Test league-adjusted points."""

    def test_dot_product(self) -> None:
        stats = {"pass_yd": 250.0, "pass_td": 2.0, "pass_int": 1.0, "rush_yd": 20.0}
        # 10 + 8 - 2 + 2
        assert score("QB", stats, PPR, fallback_projection=99.0) == pytest.approx(18.0)

    def test_unscored_stats_ignored(self) -> None:
        stats = {"rec": 5.0, "rec_yd": 60.0, "targets": 9.0}
        assert score("WR", stats, PPR) == pytest.approx(11.0)

    def test_ppr_vs_standard(self) -> None:
        stats = {"rec": 6.0, "rec_yd": 50.0}
        standard = dict(PPR, rec=0.0)
        assert score("WR", stats, PPR) - score("WR", stats, standard) == pytest.approx(6.0)

    def test_te_premium(self) -> None:
        stats = {"rec": 4.0, "rec_yd": 40.0}
        rules = dict(PPR, bonus_rec_te=0.5)
        assert score("TE", stats, rules) == pytest.approx(10.0)
        assert score("WR", stats, rules) == pytest.approx(8.0)

    def test_fallback_without_stats(self) -> None:
        assert score("RB", None, PPR, fallback_projection=12.3) == 12.3
        assert score("RB", {}, PPR, fallback_projection=12.3) == 12.3

    def test_fallback_without_rules(self) -> None:
        assert score("RB", {"rush_yd": 80.0}, {}, fallback_projection=7.0) == 7.0

    def test_fallback_when_nothing_overlaps(self) -> None:
        """A zero total means no overlap; keep the bare projection."""
        assert score("K", {"fgm_50p": 1.0}, PPR, fallback_projection=8.0) == 8.0

    def test_fallback_on_non_finite(self) -> None:
        assert score("RB", {"rush_yd": float("inf")}, PPR, fallback_projection=5.0) == 5.0

    def test_negative_total_kept(self) -> None:
        """A defense can score below zero."""
        rules = {"pts_allow": -0.1}
        assert score("DEF", {"pts_allow": 30.0}, rules, fallback_projection=4.0) == pytest.approx(-3.0)


class TestFormatLabel:
    """Test the scoring format label."""

    @pytest.mark.parametrize(
        "rec, label",
        [(1.0, "PPR"), (0.5, "Half"), (0.0, "Std")],
    )
    def test_labels(self, rec: float, label: str) -> None:
        assert format_label({"rec": rec}) == label

    def test_no_rules(self) -> None:
        assert format_label(None) == "Std"
