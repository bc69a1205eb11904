# league_batch.py
#
# Analyze many leagues at once. Fetching is network-bound, so each league runs
# on a worker thread; one league failing (platform error, timeout, bad data)
# is reported and never takes the others down.

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from config import (  # type: ignore[import]
    CURRENT_WEEK,
    EXCLUDE_BEST_BALL,
    EXCLUDE_DYNASTY,
    LEAGUE_TIMEOUT_SECONDS,
    LEAGUES,
    MAX_WORKERS,
    OPPONENT_OPTIMAL,
    SEASON_YEAR,
    WAIVER_MIN_GAIN,
)
from lineup_report import analyze_league, fetch_league_snapshot, get_projection_index  # type: ignore[import]
from models import BatchReport, LeagueAnalysis, LeagueFailure, LeagueSnapshot  # type: ignore[import]
from schedule import fetch_week_schedule  # type: ignore[import]
from storage import KeyValueStore  # type: ignore[import]

logger = logging.getLogger(__name__)

# league key -> analysis (fetch + analyze)
LeagueRunner = Callable[[str], LeagueAnalysis]
LeagueResult = Union[LeagueAnalysis, LeagueFailure]


class LeagueSkipped(Exception):
    """The league is filtered out (best ball, dynasty)."""


def skip_reason(
    snapshot: LeagueSnapshot,
    exclude_best_ball: bool = EXCLUDE_BEST_BALL,
    exclude_dynasty: bool = EXCLUDE_DYNASTY,
) -> Optional[str]:
    """Why a league should not be analyzed, or None."""
    if exclude_best_ball and snapshot.best_ball:
        return "best ball league"
    if exclude_dynasty and snapshot.dynasty:
        return "dynasty/keeper league"
    return None


def _failure(league_key: str, exc: BaseException) -> LeagueFailure:
    msg = str(exc) or exc.__class__.__name__
    if isinstance(exc, LeagueSkipped):
        logger.info("Skipping %s: %s", league_key, msg)
    else:
        logger.error("League %s failed: %s", league_key, msg)
    return LeagueFailure(league_key=league_key, error=msg)


def iter_league_results(
    league_keys: Iterable[str],
    runner: LeagueRunner,
    max_workers: int = MAX_WORKERS,
    timeout: Optional[float] = LEAGUE_TIMEOUT_SECONDS,
) -> Iterator[LeagueResult]:
    """
    Yield each league's analysis (or failure) as soon as it finishes.

    `timeout` bounds how long we wait for any league to finish; leagues still
    running after that are reported as timed out.
    """
    keys = list(dict.fromkeys(league_keys))
    if not keys:
        return

    pool = ThreadPoolExecutor(max_workers=max(1, max_workers))
    try:
        pending: Dict[Future, str] = {pool.submit(runner, key): key for key in keys}
        while pending:
            done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                for fut, key in pending.items():
                    fut.cancel()
                    yield _failure(key, TimeoutError(f"no result after {timeout}s"))
                return
            for fut in done:
                key = pending.pop(fut)
                try:
                    yield fut.result()
                except Exception as exc:
                    yield _failure(key, exc)
    finally:
        # A hung platform call must not block the caller.
        pool.shutdown(wait=False, cancel_futures=True)


def analyze_leagues(
    league_keys: Iterable[str],
    runner: LeagueRunner,
    max_workers: int = MAX_WORKERS,
    timeout: Optional[float] = LEAGUE_TIMEOUT_SECONDS,
) -> BatchReport:
    """Analyze every league; partial success is still success."""
    keys = list(dict.fromkeys(league_keys))
    order = {key: i for i, key in enumerate(keys)}
    report = BatchReport()
    for result in iter_league_results(keys, runner, max_workers=max_workers, timeout=timeout):
        if isinstance(result, LeagueFailure):
            report.failures.append(result)
        else:
            report.analyses.append(result)

    # Completion order is arbitrary; report in the order asked.
    report.analyses.sort(key=lambda a: order.get(a.league_key, len(order)))
    report.failures.sort(key=lambda f: order.get(f.league_key, len(order)))
    logger.info(report.summary())
    return report


def _pref(prefs: Dict[str, Any], key: str, default: Any) -> Any:
    """A stored preference wins over config, even when it is False."""
    value = prefs.get(key)
    return default if value is None else value


def default_runner(
    week: Optional[int] = None,
    now: Optional[datetime] = None,
    prefs: Optional[Dict[str, Any]] = None,
    store: Optional[KeyValueStore] = None,
) -> LeagueRunner:
    """
    Fetch each league from its platform, apply league filters, analyze.

    `prefs` (see storage.DEFAULT_PREFERENCES) override the config toggles.
    Every league is analyzed with `week`'s projections; `store` backs them
    when the week's CSV is missing.
    """
    prefs = prefs or {}
    wk = week or CURRENT_WEEK
    exclude_dynasty = bool(_pref(prefs, "exclude_dynasty", EXCLUDE_DYNASTY))
    opponent_optimal = bool(_pref(prefs, "opponent_optimal", OPPONENT_OPTIMAL))
    min_gain = float(_pref(prefs, "waiver_min_gain", WAIVER_MIN_GAIN))

    def run(league_key: str) -> LeagueAnalysis:
        snapshot = fetch_league_snapshot(league_key, week=wk)
        reason = skip_reason(snapshot, exclude_dynasty=exclude_dynasty)
        if reason:
            raise LeagueSkipped(reason)
        schedule = fetch_week_schedule(SEASON_YEAR, wk)
        return analyze_league(
            snapshot, get_projection_index(wk, store=store), schedule, now=now,
            min_gain=min_gain, opponent_optimal=opponent_optimal,
        )

    return run


def analyze_configured_leagues(
    league_keys: Optional[List[str]] = None,
    week: Optional[int] = None,
    prefs: Optional[Dict[str, Any]] = None,
    store: Optional[KeyValueStore] = None,
) -> BatchReport:
    keys = league_keys or list(LEAGUES)
    return analyze_leagues(keys, default_runner(week, prefs=prefs, store=store))
