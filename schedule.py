# schedule.py
#
# NFL kickoff times and live state per team for one week, from ESPN's public
# scoreboard. Any failure returns an empty schedule: callers treat that as
# "nobody locked, nobody on bye".

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import requests  # type: ignore[import]

from config import HTTP_TIMEOUT_SECONDS  # type: ignore[import]
from models import GameInfo  # type: ignore[import]

logger = logging.getLogger(__name__)

SCOREBOARD_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl/scoreboard"

# ESPN abbreviations -> the ones projections and fantasy platforms use.
ESPN_TEAM_MAP: Dict[str, str] = {
    "ARI": "ARI", "ATL": "ATL", "BAL": "BAL", "BUF": "BUF", "CAR": "CAR", "CHI": "CHI",
    "CIN": "CIN", "CLE": "CLE", "DAL": "DAL", "DEN": "DEN", "DET": "DET", "GB": "GB",
    "HOU": "HOU", "IND": "IND", "JAX": "JAX", "KC": "KC", "LV": "LV", "LAC": "LAC",
    "LAR": "LAR", "MIA": "MIA", "MIN": "MIN", "NE": "NE", "NO": "NO", "NYG": "NYG",
    "NYJ": "NYJ", "PHI": "PHI", "PIT": "PIT", "SF": "SF", "SEA": "SEA", "TB": "TB",
    "TEN": "TEN", "WAS": "WAS", "WSH": "WAS",
}

CACHE_TTL_SECONDS = 5 * 60

# (season, week) -> (expires_at, schedule)
_CACHE: Dict[Tuple[int, int], Tuple[float, Dict[str, GameInfo]]] = {}
_CACHE_LOCK = threading.Lock()


def _parse_start(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    # ESPN sends e.g. "2025-12-07T18:00Z"
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_scoreboard(data: Dict[str, Any]) -> Dict[str, GameInfo]:
    """Map a scoreboard payload to {team: GameInfo}. Unknown teams are skipped."""
    schedule: Dict[str, GameInfo] = {}
    for event in data.get("events") or []:
        comps = event.get("competitions") or []
        if not comps:
            continue
        comp = comps[0]
        start = _parse_start(comp.get("date") or event.get("date"))
        if start is None:
            continue
        state = ((comp.get("status") or {}).get("type") or {}).get("state") or "pre"
        if state not in ("pre", "in", "post"):
            state = "pre"
        for competitor in comp.get("competitors") or []:
            abbr = ((competitor.get("team") or {}).get("abbreviation") or "").upper()
            team = ESPN_TEAM_MAP.get(abbr)
            if team:
                schedule[team] = GameInfo(start=start, state=state)
    return schedule


def _is_future_week(data: Dict[str, Any], season: int, week: int) -> bool:
    feed_week = (data.get("week") or {}).get("number")
    feed_season = (data.get("season") or {}).get("year")
    if not feed_week or not feed_season:
        return False
    return season > feed_season or (season == feed_season and week > feed_week)


def fetch_week_schedule(
    season: int,
    week: int,
    session: Optional[requests.Session] = None,
) -> Dict[str, GameInfo]:
    """
    {team: GameInfo(start, state)} for every team playing this week.

    Cached for a few minutes. A week the feed hasn't reached yet gives an
    empty schedule, as does any HTTP or parsing failure (the last cached
    copy is reused if there is one).
    """
    key = (season, week)
    # Batch workers share one fetch per week.
    with _CACHE_LOCK:
        cached = _CACHE.get(key)
        if cached and time.monotonic() < cached[0]:
            return cached[1]

        http = session or requests
        try:
            resp = http.get(
                SCOREBOARD_URL,
                params={"seasontype": 2, "week": week, "dates": season},
                timeout=HTTP_TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Schedule fetch failed for %s week %s: %s", season, week, exc)
            return cached[1] if cached else {}

        if _is_future_week(data, season, week):
            logger.info("Week %s is ahead of the scoreboard; using empty schedule", week)
            schedule: Dict[str, GameInfo] = {}
        else:
            schedule = parse_scoreboard(data)
            logger.info("Schedule for %s week %s: %d teams", season, week, len(schedule))

        _CACHE[key] = (time.monotonic() + CACHE_TTL_SECONDS, schedule)
        return schedule


def clear_cache() -> None:
    _CACHE.clear()
