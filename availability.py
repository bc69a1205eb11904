# availability.py
#
# Availability Classifier and Candidate Builder.
#
# classify() tags one player (or an empty slot) for this week; build_candidate()
# joins a platform player, their projection row, the league's scoring rules
# and the week's schedule into the Candidate the optimizer works with.

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Tuple

from models import (  # type: ignore[import]
    Availability,
    AvailabilitySummary,
    Candidate,
    GameInfo,
    PlayerRecord,
    ProjectionRow,
    Source,
)
from scoring import score  # type: ignore[import]
from slot_rules import normalize_position  # type: ignore[import]

logger = logging.getLogger(__name__)

# Declared inactive: value is forced to zero.
OUT_STATUSES = frozenset({
    "O",
    "OUT",
    "IR",
    "INJURY-RESERVE",
    "DNR",
    "NA",
    "SUS",
    "SSPD",
    "SUSPENDED",
    "SUSPENSION",
    "PUP",
})

# Declared uncertain: still projected, but flagged.
QUESTIONABLE_STATUSES = frozenset({
    "Q",
    "QUESTIONABLE",
    "D",
    "DOUBTFUL",
    "SUSPENDED-PENDING",
})

LIVE_GAME_STATES = frozenset({"in", "post"})


def normalize_status(raw: Optional[str]) -> str:
    return (raw or "").strip().upper().replace("_", "-").replace(" ", "-")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def kickoff(team: Optional[str], schedule: Mapping[str, GameInfo]) -> Optional[datetime]:
    """UTC kickoff of the team's game, or None when it isn't on the schedule."""
    game = schedule.get(team.upper()) if team else None
    return _as_utc(game.start) if game is not None else None


def has_game_started(
    team: Optional[str],
    schedule: Mapping[str, GameInfo],
    now: datetime,
) -> bool:
    """Kickoff has passed or the feed reports the game live/final."""
    if not team:
        return False
    game = schedule.get(team.upper())
    if game is None:
        return False
    return game.state in LIVE_GAME_STATES or _as_utc(now) >= _as_utc(game.start)


def is_team_on_bye(team: Optional[str], schedule: Mapping[str, GameInfo]) -> bool:
    """
    A team missing from a non-empty schedule is on bye.

    An empty schedule means the feed failed; we fail open and report no byes
    so nobody gets zeroed out on missing data.
    """
    if not schedule or not team:
        return False
    return team.upper() not in schedule


def classify(
    player: Optional[PlayerRecord],
    schedule: Mapping[str, GameInfo],
    now: datetime,
    played: bool = False,
    opponent: Optional[str] = None,
) -> Availability:
    """
    One availability tag for a starter slot, first match wins:
    LOCKED, OUT, BYE, EMPTY, QUESTIONABLE, STARTING.

    Never raises; an unrecognized status string counts as STARTING.
    """
    if player is not None and (played or has_game_started(player.team, schedule, now)):
        return Availability.LOCKED

    status = normalize_status(player.injury_status) if player is not None else ""
    if player is not None and status in OUT_STATUSES:
        return Availability.OUT

    if player is not None and (
        (opponent or "").strip().upper() == "BYE" or is_team_on_bye(player.team, schedule)
    ):
        return Availability.BYE

    if player is None:
        return Availability.EMPTY

    if status in QUESTIONABLE_STATUSES:
        return Availability.QUESTIONABLE

    return Availability.STARTING


def candidate_value(
    tag: Availability,
    projection: float,
    actual_points: Optional[float],
    injury_status: Optional[str] = None,
) -> float:
    """
    The number the optimizer credits for a player.

    OUT and BYE score zero. A LOCKED player scores their actual points when
    known, otherwise the projection frozen at kickoff (zero if they had been
    declared inactive before it).
    """
    if tag in (Availability.OUT, Availability.BYE, Availability.EMPTY):
        return 0.0
    if tag == Availability.LOCKED:
        if actual_points is not None:
            return float(actual_points)
        if normalize_status(injury_status) in OUT_STATUSES:
            return 0.0
    return projection


def build_candidate(
    player: PlayerRecord,
    projection_row: Optional[ProjectionRow],
    scoring_rules: Mapping[str, float],
    schedule: Mapping[str, GameInfo],
    now: datetime,
    source: Source = Source.BENCH,
    current_slot: Optional[str] = None,
    actual_points: Optional[float] = None,
    played: bool = False,
    platform_projection: Optional[float] = None,
) -> Candidate:
    """Score, classify and value one player."""
    position = normalize_position(player.position)

    missing = projection_row is None and platform_projection is None
    if projection_row is not None:
        projection = score(position, projection_row.stats, scoring_rules, projection_row.projection)
        opponent = projection_row.opponent
    else:
        projection = float(platform_projection or 0.0)
        opponent = None
    if missing:
        logger.debug("No projection for %s (%s); treating as 0.0", player.name, player.player_id)

    tag = classify(player, schedule, now, played=played, opponent=opponent)
    value = candidate_value(tag, projection, actual_points, player.injury_status)

    return Candidate(
        player_id=player.player_id,
        name=player.name,
        position=position,
        projection=projection,
        value=value,
        tag=tag,
        source=source,
        team=player.team,
        alt_positions=tuple(normalize_position(p) for p in player.alt_positions),
        current_slot=current_slot,
        actual_points=actual_points if tag == Availability.LOCKED else None,
        injury_status=player.injury_status,
        missing_projection=missing,
    )


def summarize_starters(
    starters: Iterable[Tuple[str, Optional[Candidate]]],
) -> AvailabilitySummary:
    """Count starters who won't play (OUT / BYE / EMPTY) and questionable ones."""
    not_playing = []
    questionable = []
    for slot, cand in starters:
        if cand is None:
            not_playing.append((slot, None, Availability.EMPTY))
        elif cand.tag in (Availability.OUT, Availability.BYE):
            not_playing.append((slot, cand.name, cand.tag))
        elif cand.tag == Availability.QUESTIONABLE:
            questionable.append((slot, cand.name))
    return AvailabilitySummary(not_playing=tuple(not_playing), questionable=tuple(questionable))
