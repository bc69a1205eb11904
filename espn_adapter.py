# espn_adapter.py
#
# Pull one ESPN league through espn_api and map it into a platform-neutral
# LeagueSnapshot: my lineup (from this week's box score), bench and IR, the
# opponent's lineup, owned player ids, free agents, actual points and ESPN's
# own league-scored projections.

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests  # type: ignore[import]
from espn_api.football import League  # type: ignore[import]
from espn_api.requests.espn_requests import (  # type: ignore[import]
    ESPNAccessDenied,
    ESPNInvalidLeague,
    ESPNUnknownError,
)

from config import (  # type: ignore[import]
    CURRENT_WEEK,
    ESPN_S2,
    ESPN_SWID,
    FREE_AGENT_FETCH_SIZE,
    SEASON_YEAR,
)
from models import (  # type: ignore[import]
    LeagueSnapshot,
    PlatformError,
    PlayerRecord,
    RosterSnapshot,
)
from slot_rules import NON_STARTING_SLOTS, normalize_position, normalize_slot  # type: ignore[import]

logger = logging.getLogger(__name__)

ESPN_ERRORS = (ESPNAccessDenied, ESPNInvalidLeague, ESPNUnknownError, requests.RequestException)

# Positions a player can be listed at (eligibleSlots also has slot codes).
BASE_POSITIONS = frozenset({"QB", "RB", "WR", "TE", "K", "D/ST", "DL", "LB", "DB", "P", "HC"})

# ESPN scoring item abbreviations -> stat keys used in projection rows.
# First occurrence wins: defensive items reuse some offensive abbreviations.
SCORING_ABBR_MAP: Dict[str, str] = {
    "PC": "pass_cmp",
    "PA": "pass_att",
    "PY": "pass_yd",
    "PTD": "pass_td",
    "INT": "pass_int",
    "2PC": "pass_2pt",
    "RA": "rush_att",
    "RY": "rush_yd",
    "RTD": "rush_td",
    "2PR": "rush_2pt",
    "REC": "rec",
    "REY": "rec_yd",
    "RETD": "rec_td",
    "2PRE": "rec_2pt",
    "FUML": "fum_lost",
    "PAT": "xpm",
    "SK": "sack",
    "FR": "fum_rec",
    "SF": "safe",
    "BLKK": "blk_kick",
}


# ---------- tiny helper so dicts & objects both work ----------

def _cfg_get(cfg: Optional[Any], key: str, default=None):
    """
    Read a config field whether cfg is a dict or a simple object.
    """
    if cfg is None:
        return default
    if isinstance(cfg, dict):
        return cfg.get(key, default)
    return getattr(cfg, key, default)


# ---------- league helper ----------

def _get_league(league_cfg: Optional[Any] = None) -> League:
    """Build an ESPN League for a league config entry."""
    return League(
        league_id=_cfg_get(league_cfg, "league_id"),
        year=_cfg_get(league_cfg, "season_year", SEASON_YEAR),
        espn_s2=_cfg_get(league_cfg, "espn_s2", ESPN_S2) or None,
        swid=_cfg_get(league_cfg, "espn_swid", ESPN_SWID) or None,
    )


def _find_my_team(league: Any, league_cfg: Optional[Any]) -> Any:
    """
    Find the user's team in the league using team_name_keyword.
    """
    name_keyword = _cfg_get(league_cfg, "team_name_keyword")
    if not name_keyword:
        raise PlatformError("ESPN league config is missing 'team_name_keyword'")

    keyword_lower = name_keyword.lower()

    for t in league.teams:
        if keyword_lower in t.team_name.lower():
            return t

    raise PlatformError(
        f"Could not find team whose name contains '{name_keyword}' in this league."
    )


# ---------- mapping ----------

def _player_id(p: Any) -> str:
    return str(getattr(p, "playerId", "") or getattr(p, "name", ""))


def to_player_record(p: Any) -> PlayerRecord:
    """ESPN Player / BoxPlayer -> PlayerRecord."""
    pos = normalize_position(getattr(p, "position", "") or "")
    alt = tuple(
        normalize_position(s)
        for s in (getattr(p, "eligibleSlots", None) or [])
        if s in BASE_POSITIONS and normalize_position(s) != pos
    )
    return PlayerRecord(
        player_id=_player_id(p),
        name=getattr(p, "name", "") or "",
        position=pos,
        team=(getattr(p, "proTeam", None) or None),
        injury_status=getattr(p, "injuryStatus", None),
        alt_positions=tuple(dict.fromkeys(alt)),
    )


def roster_positions_from_settings(settings: Any) -> Tuple[str, ...]:
    """Expand ESPN's {slot: count} table into a roster-position list."""
    counts = getattr(settings, "position_slot_counts", None) or {}
    out: List[str] = []
    for slot, n in counts.items():
        out.extend([str(slot)] * int(n or 0))
    return tuple(out)


def scoring_rules_from_settings(settings: Any) -> Dict[str, float]:
    rules: Dict[str, float] = {}
    for item in getattr(settings, "scoring_format", None) or []:
        key = SCORING_ABBR_MAP.get(str(item.get("abbr", "")).upper())
        if key and key not in rules:
            try:
                rules[key] = float(item.get("points", 0.0))
            except (TypeError, ValueError):
                continue
    return rules


def _has_played(p: Any) -> bool:
    locked_flag = getattr(p, "lineupLocked", None)
    if isinstance(locked_flag, bool) and locked_flag:
        return True
    return (getattr(p, "game_played", 0) or 0) > 0


def roster_from_lineup(
    owner: str,
    lineup: Iterable[Any],
    roster_positions: Iterable[str],
) -> RosterSnapshot:
    """
    Split a box-score lineup into starters (aligned to the starting slots, in
    league order), bench and IR.
    """
    starting = [normalize_slot(s) for s in roster_positions]
    starting = [s for s in starting if s not in NON_STARTING_SLOTS]

    by_slot: Dict[str, List[PlayerRecord]] = {}
    bench: List[PlayerRecord] = []
    reserve: List[PlayerRecord] = []
    for p in lineup:
        rec = to_player_record(p)
        slot = normalize_slot(str(getattr(p, "slot_position", "") or getattr(p, "lineupSlot", "")))
        if slot == "IR":
            reserve.append(rec)
        elif slot in NON_STARTING_SLOTS or not slot:
            bench.append(rec)
        else:
            by_slot.setdefault(slot, []).append(rec)

    starters: List[Optional[PlayerRecord]] = []
    for slot in starting:
        queue = by_slot.get(slot) or []
        starters.append(queue.pop(0) if queue else None)
    for leftover in by_slot.values():
        # Starters in a slot the league table doesn't list; nothing to align to.
        bench.extend(leftover)

    return RosterSnapshot(owner=owner, starters=tuple(starters), bench=tuple(bench), reserve=tuple(reserve))


def _find_box_score(box_scores: Iterable[Any], team: Any) -> Tuple[Optional[Any], str]:
    """(box score containing `team`, which side: 'home' or 'away')."""
    for box in box_scores:
        if getattr(box.home_team, "team_id", None) == team.team_id:
            return box, "home"
        if getattr(box.away_team, "team_id", None) == team.team_id:
            return box, "away"
    return None, ""


def snapshot_from_league(
    league_key: str,
    league: Any,
    my_team: Any,
    week: int,
    box_scores: Iterable[Any],
    free_agents: Iterable[Any],
) -> LeagueSnapshot:
    """Map already-fetched espn_api objects into a LeagueSnapshot."""
    settings = league.settings
    roster_positions = roster_positions_from_settings(settings)

    box, side = _find_box_score(box_scores, my_team)
    if box is not None:
        my_lineup = list(box.home_lineup if side == "home" else box.away_lineup)
        opp_team = box.away_team if side == "home" else box.home_team
        opp_lineup = list(box.away_lineup if side == "home" else box.home_lineup)
    else:
        # Bye week for the whole league (or playoffs); fall back to the roster.
        my_lineup = list(my_team.roster)
        opp_team, opp_lineup = None, []

    my_roster = roster_from_lineup(my_team.team_name, my_lineup, roster_positions)
    opponent = None
    if opp_team is not None and hasattr(opp_team, "team_name"):
        opponent = roster_from_lineup(opp_team.team_name, opp_lineup, roster_positions)

    owned = frozenset(_player_id(p) for t in league.teams for p in t.roster)

    actual_points: Dict[str, float] = {}
    played = set()
    platform_projections: Dict[str, float] = {}
    fa_records: List[PlayerRecord] = []
    for p in list(my_lineup) + list(opp_lineup):
        pid = _player_id(p)
        proj = getattr(p, "projected_points", None)
        if proj is not None:
            platform_projections[pid] = float(proj)
        if _has_played(p):
            played.add(pid)
            actual_points[pid] = float(getattr(p, "points", 0.0) or 0.0)
    for p in free_agents:
        rec = to_player_record(p)
        if rec.player_id in owned:
            continue
        fa_records.append(rec)
        proj = getattr(p, "projected_points", None)
        if proj is not None:
            platform_projections[rec.player_id] = float(proj)
        if _has_played(p):
            played.add(rec.player_id)

    return LeagueSnapshot(
        league_key=league_key,
        league_name=getattr(settings, "name", "") or league_key,
        week=week,
        roster_positions=roster_positions,
        scoring_rules=scoring_rules_from_settings(settings),
        roster=my_roster,
        owned_player_ids=owned,
        free_agents=tuple(fa_records),
        actual_points=actual_points,
        played_player_ids=frozenset(played),
        opponent=opponent,
        platform_projections=platform_projections,
    )


def fetch_espn_snapshot(
    league_key: str,
    league_cfg: Dict[str, Any],
    week: Optional[int] = None,
    max_free_agents: int = FREE_AGENT_FETCH_SIZE,
) -> LeagueSnapshot:
    """
    Fetch one ESPN league for a week. espn_api and HTTP failures are raised
    as PlatformError.
    """
    week = week or _cfg_get(league_cfg, "week") or CURRENT_WEEK
    try:
        league = _get_league(league_cfg)
        my_team = _find_my_team(league, league_cfg)
        box_scores = league.box_scores(week)
        free_agents = league.free_agents(week=week, size=max_free_agents)
    except ESPN_ERRORS as exc:
        raise PlatformError(f"ESPN league {league_key}: {exc}") from exc

    logger.info(
        "ESPN %s: %d teams, %d free agents for week %s",
        league_key, len(league.teams), len(free_agents), week,
    )
    return snapshot_from_league(league_key, league, my_team, week, box_scores, free_agents)
