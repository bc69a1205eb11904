# sleeper_adapter.py
#
# Pull one Sleeper league through the public Sleeper API (plain requests, no
# auth) and map it into a platform-neutral LeagueSnapshot. Sleeper's weekly
# projections double as the platform projection for every player and decide
# which free agents are worth looking at.

from __future__ import annotations

import logging
import re
import threading
from typing import Any, Dict, List, Mapping, Optional

import requests  # type: ignore[import]

from config import (  # type: ignore[import]
    CURRENT_WEEK,
    FREE_AGENT_FETCH_SIZE,
    HTTP_TIMEOUT_SECONDS,
    SEASON_YEAR,
    SLEEPER_USERNAME,
)
from models import (  # type: ignore[import]
    LeagueSnapshot,
    PlatformError,
    PlayerRecord,
    RosterSnapshot,
)
from scoring import score  # type: ignore[import]
from slot_rules import (  # type: ignore[import]
    normalize_position,
    slot_accepts,
    starting_slots,
)

logger = logging.getLogger(__name__)

API_ROOT = "https://api.sleeper.app/v1"
PROJECTIONS_URL = "https://api.sleeper.com/projections/nfl/{season}/{week}"

# The player database is ~5MB and changes daily at most; keep one copy.
_PLAYERS_CACHE: Dict[str, Dict[str, Any]] = {}
_PLAYERS_LOCK = threading.Lock()


def _get_json(path_or_url: str, session: Optional[requests.Session] = None, **params: Any) -> Any:
    url = path_or_url if path_or_url.startswith("http") else f"{API_ROOT}{path_or_url}"
    http = session or requests
    try:
        resp = http.get(url, params=params or None, timeout=HTTP_TIMEOUT_SECONDS)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise PlatformError(f"Sleeper request failed for {url}: {exc}") from exc


# ---------------------------------------------------------------------------
# League classification
# ---------------------------------------------------------------------------


def is_best_ball(league: Mapping[str, Any]) -> bool:
    flag = (league.get("settings") or {}).get("best_ball")
    if flag in (1, True):
        return True
    text = f"{league.get('name') or ''} {(league.get('metadata') or {}).get('description') or ''}"
    return bool(
        re.search(r"best\s*ball", text, re.I)
        or re.search(r"\bBB\b", text, re.I)
        or re.search(r"\[(?:REDRAFT|DYNASTY)\s*BB\]", text, re.I)
    )


def is_dynasty(league: Mapping[str, Any]) -> bool:
    """Dynasty or keeper: continued from a prior season, keepers, or named so."""
    settings = league.get("settings") or {}
    metadata = league.get("metadata") or {}
    if league.get("previous_league_id"):
        return True
    if metadata.get("copy_from_league_id") or metadata.get("league_history") or metadata.get("auto_continue"):
        return True
    if (settings.get("keeper_count") or settings.get("keepers") or 0) > 0:
        return True
    if str(settings.get("type", "")).lower() in ("dynasty", "keeper", "2", "1"):
        return True
    name = f"{league.get('name') or ''} {metadata.get('description') or ''}".lower()
    if "dynasty" in name or "keeper" in name:
        return True
    return bool(re.search(r"\bd\d+\b", name))


def autosub_requires_later_start(league: Mapping[str, Any]) -> bool:
    """Whether the league's auto-subs may only pick a player kicking off later."""
    settings = league.get("settings") or {}
    return any(
        bool(settings.get(k))
        for k in (
            "player_autosubs_require_later_start",
            "autosubs_require_later_start",
            "auto_subs_require_later_start",
        )
    )


# ---------------------------------------------------------------------------
# Players / projections
# ---------------------------------------------------------------------------


def fetch_players_index(session: Optional[requests.Session] = None) -> Dict[str, Dict[str, Any]]:
    # Leagues fetched in parallel wait for a single download.
    with _PLAYERS_LOCK:
        if not _PLAYERS_CACHE:
            _PLAYERS_CACHE.update(_get_json("/players/nfl", session))
            logger.info("Loaded %d Sleeper players", len(_PLAYERS_CACHE))
    return _PLAYERS_CACHE


def fetch_sleeper_projections(
    season: int,
    week: int,
    session: Optional[requests.Session] = None,
) -> Dict[str, Dict[str, float]]:
    """{player_id: projected stat line} for the week."""
    data = _get_json(
        PROJECTIONS_URL.format(season=season, week=week), session, season_type="regular"
    )
    out: Dict[str, Dict[str, float]] = {}
    for row in data or []:
        pid = str(row.get("player_id") or "")
        stats = row.get("stats") or {}
        if pid and isinstance(stats, dict):
            out[pid] = {k: float(v) for k, v in stats.items() if isinstance(v, (int, float))}
    return out


def _fallback_points(stats: Mapping[str, float], rules: Mapping[str, float]) -> float:
    rec = float(rules.get("rec", 0.0) or 0.0)
    if rec >= 1.0:
        return stats.get("pts_ppr", 0.0)
    if rec >= 0.5:
        return stats.get("pts_half_ppr", 0.0)
    return stats.get("pts_std", 0.0)


def to_player_record(player_id: str, players: Mapping[str, Mapping[str, Any]]) -> PlayerRecord:
    meta = players.get(player_id) or {}
    name = (
        meta.get("full_name")
        or f"{meta.get('first_name') or ''} {meta.get('last_name') or ''}".strip()
        or f"Player {player_id}"
    )
    pos = normalize_position(meta.get("position") or "")
    alt = tuple(
        dict.fromkeys(
            normalize_position(p) for p in (meta.get("fantasy_positions") or []) if normalize_position(p) != pos
        )
    )
    return PlayerRecord(
        player_id=player_id,
        name=name,
        position=pos,
        # Team defenses are keyed by team code and have no "team" field.
        team=meta.get("team") or (player_id if pos == "DEF" else None),
        injury_status=meta.get("injury_status"),
        alt_positions=alt,
    )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _roster_snapshot(
    owner: str,
    roster: Mapping[str, Any],
    matchup: Optional[Mapping[str, Any]],
    n_starting: int,
    players: Mapping[str, Mapping[str, Any]],
) -> RosterSnapshot:
    # Matchup starters reflect in-week changes; the roster's are the fallback.
    starters_raw = list((matchup or {}).get("starters") or roster.get("starters") or [])
    starters_raw = (starters_raw + ["0"] * n_starting)[:n_starting]
    starters = tuple(
        None if not pid or pid == "0" else to_player_record(str(pid), players) for pid in starters_raw
    )
    starting_ids = {str(pid) for pid in starters_raw if pid and pid != "0"}
    reserve_ids = {str(pid) for pid in roster.get("reserve") or []}
    taxi_ids = {str(pid) for pid in roster.get("taxi") or []}
    bench = tuple(
        to_player_record(str(pid), players)
        for pid in roster.get("players") or []
        if str(pid) not in starting_ids | reserve_ids | taxi_ids
    )
    reserve = tuple(to_player_record(pid, players) for pid in sorted(reserve_ids))
    return RosterSnapshot(owner=owner, starters=starters, bench=bench, reserve=reserve)


def build_snapshot(
    league_key: str,
    league: Mapping[str, Any],
    rosters: List[Mapping[str, Any]],
    users: List[Mapping[str, Any]],
    matchups: List[Mapping[str, Any]],
    players: Mapping[str, Mapping[str, Any]],
    projections: Mapping[str, Mapping[str, float]],
    user_id: str,
    week: int,
    max_free_agents: int = FREE_AGENT_FETCH_SIZE,
) -> LeagueSnapshot:
    """Map already-fetched Sleeper payloads into a LeagueSnapshot."""
    roster_positions = tuple(league.get("roster_positions") or [])
    rules = {k: float(v) for k, v in (league.get("scoring_settings") or {}).items()
             if isinstance(v, (int, float))}
    n_starting = len(starting_slots(roster_positions))
    names = {u.get("user_id"): u.get("display_name") or u.get("user_id") for u in users}

    mine = next((r for r in rosters if r.get("owner_id") == user_id), None)
    if mine is None:
        raise PlatformError(f"Sleeper league {league_key}: user {user_id} has no roster")

    by_roster = {m.get("roster_id"): m for m in matchups}
    my_matchup = by_roster.get(mine.get("roster_id"))
    my_roster = _roster_snapshot(names.get(user_id, user_id), mine, my_matchup, n_starting, players)

    opponent = None
    if my_matchup and my_matchup.get("matchup_id"):
        opp_matchup = next(
            (m for m in matchups
             if m.get("matchup_id") == my_matchup["matchup_id"] and m.get("roster_id") != mine.get("roster_id")),
            None,
        )
        opp_roster = next((r for r in rosters if opp_matchup and r.get("roster_id") == opp_matchup.get("roster_id")), None)
        if opp_roster is not None:
            owner = names.get(opp_roster.get("owner_id"), "Opponent")
            opponent = _roster_snapshot(owner, opp_roster, opp_matchup, n_starting, players)

    owned = frozenset(str(pid) for r in rosters for pid in (r.get("players") or []))

    actual_points: Dict[str, float] = {}
    for m in matchups:
        for pid, pts in (m.get("players_points") or {}).items():
            if pid and pid != "0" and isinstance(pts, (int, float)):
                actual_points[str(pid)] = float(pts)

    platform_projections: Dict[str, float] = {}
    for pid, stats in projections.items():
        pos = normalize_position((players.get(pid) or {}).get("position") or "")
        platform_projections[pid] = score(pos, stats, rules, _fallback_points(stats, rules))

    # Free agents: unowned players at a position some starting slot takes,
    # best projected first.
    slots = starting_slots(roster_positions)
    fa_ids = [
        pid for pid in projections
        if pid not in owned
        and pid in players
        and any(slot_accepts(s, normalize_position(players[pid].get("position") or "")) for s in slots)
    ]
    fa_ids.sort(key=lambda pid: (-platform_projections.get(pid, 0.0), pid))
    free_agents = tuple(to_player_record(pid, players) for pid in fa_ids[:max_free_agents])

    return LeagueSnapshot(
        league_key=league_key,
        league_name=league.get("name") or league_key,
        week=week,
        roster_positions=roster_positions,
        scoring_rules=rules,
        roster=my_roster,
        owned_player_ids=owned,
        free_agents=free_agents,
        # players_points lists every starter, played or not; locking comes
        # from the schedule, these only replace the projection once locked.
        actual_points=actual_points,
        played_player_ids=frozenset(),
        opponent=opponent,
        platform_projections=platform_projections,
        best_ball=is_best_ball(league),
        dynasty=is_dynasty(league),
        autosub_require_later_start=autosub_requires_later_start(league),
    )


def fetch_sleeper_snapshot(
    league_key: str,
    league_cfg: Dict[str, Any],
    week: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> LeagueSnapshot:
    """Fetch one Sleeper league for a week; failures raise PlatformError."""
    week = week or league_cfg.get("week") or CURRENT_WEEK
    season = league_cfg.get("season_year", SEASON_YEAR)
    league_id = str(league_cfg["league_id"])
    username = league_cfg.get("username") or SLEEPER_USERNAME
    if not username:
        raise PlatformError(f"Sleeper league {league_key}: no username configured")

    user = _get_json(f"/user/{username}", session)
    if not user or not user.get("user_id"):
        raise PlatformError(f"Sleeper user not found: {username}")

    league = _get_json(f"/league/{league_id}", session)
    rosters = _get_json(f"/league/{league_id}/rosters", session) or []
    users = _get_json(f"/league/{league_id}/users", session) or []
    matchups = _get_json(f"/league/{league_id}/matchups/{week}", session) or []
    players = fetch_players_index(session)
    projections = fetch_sleeper_projections(season, week, session)

    logger.info(
        "Sleeper %s: %d rosters, %d projected players for week %s",
        league_key, len(rosters), len(projections), week,
    )
    return build_snapshot(
        league_key, league, rosters, users, matchups, players, projections,
        str(user["user_id"]), week,
    )
