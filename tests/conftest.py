"""Shared fixtures: candidate and league snapshot builders."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

import pytest

from models import (
    Availability,
    Candidate,
    GameInfo,
    LeagueSnapshot,
    PlayerRecord,
    RosterSnapshot,
    Source,
)

NOW = datetime(2025, 12, 7, 17, 0, tzinfo=timezone.utc)

TEAMS = ("KC", "SF", "DAL", "MIN", "DET", "BUF", "SEA", "NYJ")


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_candidate():
    """Build a Candidate whose value equals its projection unless told otherwise."""

    def _make(
        pid: str,
        position: str,
        value: float,
        tag: Availability = Availability.STARTING,
        source: Source = Source.BENCH,
        current_slot: Optional[str] = None,
        alt_positions: Iterable[str] = (),
        projection: Optional[float] = None,
        team: Optional[str] = None,
    ) -> Candidate:
        return Candidate(
            player_id=pid,
            name=pid.title(),
            position=position,
            projection=value if projection is None else projection,
            value=value,
            tag=tag,
            source=source,
            current_slot=current_slot,
            alt_positions=tuple(alt_positions),
            team=team,
        )

    return _make


def full_schedule(started: Iterable[str] = ()) -> Dict[str, GameInfo]:
    """Every test team plays; teams in `started` kicked off an hour ago."""
    started = set(started)
    return {
        team: GameInfo(
            start=NOW - timedelta(hours=1) if team in started else NOW + timedelta(hours=3),
            state="in" if team in started else "pre",
        )
        for team in TEAMS
    }


@pytest.fixture
def schedule_factory():
    return full_schedule


@pytest.fixture
def snapshot_factory():
    """
    A one-league snapshot:

      QB  qb1 20 | RB rb1 15 | RB rb2 6 | WR wr1 14 | FLEX (empty)
      bench: rb3 12, wr2 9     IR: te1 10 (status IR)
      free agents: wr_fa 13, k_fa 9
    """

    def _make(
        league_key: str = "home",
        projections: Optional[Dict[str, float]] = None,
        actual_points: Optional[Dict[str, float]] = None,
        opponent: Optional[RosterSnapshot] = None,
        best_ball: bool = False,
        dynasty: bool = False,
    ) -> LeagueSnapshot:
        qb1 = PlayerRecord("qb1", "Quarter Back", "QB", "KC")
        rb1 = PlayerRecord("rb1", "Running One", "RB", "SF")
        rb2 = PlayerRecord("rb2", "Running Two", "RB", "DAL")
        wr1 = PlayerRecord("wr1", "Wide One", "WR", "MIN")
        rb3 = PlayerRecord("rb3", "Running Three", "RB", "DET")
        wr2 = PlayerRecord("wr2", "Wide Two", "WR", "BUF")
        te1 = PlayerRecord("te1", "Tight End", "TE", "SEA", injury_status="IR")
        wr_fa = PlayerRecord("wr_fa", "Wide Free", "WR", "SEA")
        k_fa = PlayerRecord("k_fa", "Kicker Free", "K", "NYJ")

        proj = {
            "qb1": 20.0, "rb1": 15.0, "rb2": 6.0, "wr1": 14.0,
            "rb3": 12.0, "wr2": 9.0, "te1": 10.0,
            "wr_fa": 13.0, "k_fa": 9.0,
        }
        proj.update(projections or {})

        roster = RosterSnapshot(
            owner="Me",
            starters=(qb1, rb1, rb2, wr1, None),
            bench=(rb3, wr2),
            reserve=(te1,),
        )
        return LeagueSnapshot(
            league_key=league_key,
            league_name=f"League {league_key}",
            week=14,
            roster_positions=("QB", "RB", "RB", "WR", "FLEX", "BN", "BN", "IR"),
            scoring_rules={"rec": 1.0},
            roster=roster,
            owned_player_ids=frozenset({"qb1", "rb1", "rb2", "wr1", "rb3", "wr2", "te1"}),
            free_agents=(wr_fa, k_fa),
            actual_points=actual_points or {},
            opponent=opponent,
            platform_projections=proj,
            best_ball=best_ball,
            dynasty=dynasty,
        )

    return _make
