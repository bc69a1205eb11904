"""Tests for schedule module."""

from datetime import datetime, timezone
from typing import Any, Dict, List
from unittest.mock import Mock

import pytest
import requests

import schedule
from schedule import fetch_week_schedule, parse_scoreboard


def _event(date: str, state: str, *teams: str) -> Dict[str, Any]:
    return {
        "date": date,
        "competitions": [
            {
                "date": date,
                "status": {"type": {"state": state}},
                "competitors": [{"team": {"abbreviation": t}} for t in teams],
            }
        ],
    }


def _payload(events: List[Dict[str, Any]], season: int = 2025, week: int = 14) -> Dict[str, Any]:
    return {"season": {"year": season}, "week": {"number": week}, "events": events}


@pytest.fixture(autouse=True)
def _clear_cache():
    schedule.clear_cache()
    yield
    schedule.clear_cache()


def _session(payload: Any = None, exc: Exception = None) -> Mock:
    session = Mock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        resp = Mock()
        resp.json.return_value = payload
        resp.raise_for_status.return_value = None
        session.get.return_value = resp
    return session


class TestParseScoreboard:
    """Test mapping the scoreboard payload to kickoffs."""

    def test_teams_and_states(self) -> None:
        data = _payload([
            _event("2025-12-07T18:00Z", "pre", "KC", "LV"),
            _event("2025-12-05T01:15Z", "post", "WSH", "DAL"),
        ])

        sched = parse_scoreboard(data)

        assert set(sched) == {"KC", "LV", "WAS", "DAL"}
        assert sched["KC"].start == datetime(2025, 12, 7, 18, 0, tzinfo=timezone.utc)
        assert sched["WAS"].state == "post"

    def test_unknown_team_and_bad_events_skipped(self) -> None:
        data = _payload([
            _event("2025-12-07T18:00Z", "pre", "XXX", "KC"),
            {"competitions": []},
            _event("not a date", "pre", "BUF", "MIA"),
        ])

        assert set(parse_scoreboard(data)) == {"KC"}

    def test_unknown_state_treated_as_pre(self) -> None:
        data = _payload([_event("2025-12-07T18:00Z", "delayed", "KC", "LV")])
        assert parse_scoreboard(data)["KC"].state == "pre"

    def test_empty_payload(self) -> None:
        assert parse_scoreboard({}) == {}


class TestFetchWeekSchedule:
    """Test fetching with caching and fail-open behavior."""

    def test_fetch_and_cache(self) -> None:
        session = _session(_payload([_event("2025-12-07T18:00Z", "pre", "KC", "LV")]))

        first = fetch_week_schedule(2025, 14, session=session)
        second = fetch_week_schedule(2025, 14, session=session)

        assert set(first) == {"KC", "LV"}
        assert second == first
        assert session.get.call_count == 1
        _, kwargs = session.get.call_args
        assert kwargs["params"] == {"seasontype": 2, "week": 14, "dates": 2025}

    def test_http_failure_gives_empty_schedule(self) -> None:
        session = _session(exc=requests.ConnectionError("down"))
        assert fetch_week_schedule(2025, 14, session=session) == {}

    def test_bad_json_gives_empty_schedule(self) -> None:
        session = _session()
        session.get.return_value.json.side_effect = ValueError("not json")
        assert fetch_week_schedule(2025, 14, session=session) == {}

    def test_failure_reuses_stale_copy(self) -> None:
        good = _session(_payload([_event("2025-12-07T18:00Z", "pre", "KC", "LV")]))
        fetch_week_schedule(2025, 14, session=good)
        # Expire the cached copy.
        key = (2025, 14)
        schedule._CACHE[key] = (0.0, schedule._CACHE[key][1])

        stale = fetch_week_schedule(2025, 14, session=_session(exc=requests.Timeout("slow")))

        assert set(stale) == {"KC", "LV"}

    def test_future_week_is_empty(self) -> None:
        session = _session(_payload([_event("2025-12-07T18:00Z", "pre", "KC", "LV")], week=14))
        assert fetch_week_schedule(2025, 16, session=session) == {}
