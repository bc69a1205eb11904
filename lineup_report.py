# lineup_report.py
#
# Core lineup logic for RosterPilot.
# - Builds candidates for one league (scoring, availability, value)
# - Optimizes three lineups: current, bench-optimal, waiver-optimal
# - Suggests bench -> starter moves, waiver-wire upgrades and auto-subs
# - Projects the week's matchup against the opponent
#
# Used both by the CLI entrypoint AND the FastAPI app (via run_league).

from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from availability import build_candidate, summarize_starters  # type: ignore[import]
from config import (  # type: ignore[import]
    CURRENT_WEEK,
    DEFAULT_LEAGUE_KEY,
    LEAGUES,
    MAX_WAIVER_GROUPS,
    OPPONENT_OPTIMAL,
    PROJECTION_CACHE_SECONDS,
    SEASON_YEAR,
    WAIVER_MIN_GAIN,
    projections_csv_path,
)
from models import (  # type: ignore[import]
    Availability,
    Candidate,
    GameInfo,
    LeagueAnalysis,
    LeagueSnapshot,
    MatchupProjection,
    PlayerRecord,
    RosterSnapshot,
    Source,
)
from optimizer import assignment_from_lineup, optimize, validate_assignment  # type: ignore[import]
from projections import ProjectionIndex, load_projection_csv  # type: ignore[import]
from recommendations import (  # type: ignore[import]
    build_auto_subs,
    build_bench_moves,
    build_free_agent_pool,
    build_waiver_suggestions,
    group_waiver_suggestions,
)
from schedule import fetch_week_schedule  # type: ignore[import]
from scoring import format_label  # type: ignore[import]
from slot_rules import build_slot_capacity, starting_slots  # type: ignore[import]
from storage import (  # type: ignore[import]
    KeyValueStore,
    SqliteKeyValueStore,
    load_projections,
    save_projections,
)

logger = logging.getLogger(__name__)


class UnknownLeagueError(KeyError):
    """League key not present in config.LEAGUES."""


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


class _CandidateFactory:
    """Everything build_candidate needs that is shared across one league."""

    def __init__(
        self,
        snapshot: LeagueSnapshot,
        projections: Optional[ProjectionIndex],
        schedule: Mapping[str, GameInfo],
        now: datetime,
    ):
        self.snapshot = snapshot
        self.projections = projections
        self.schedule = schedule
        self.now = now

    def __call__(
        self,
        player: PlayerRecord,
        source: Source,
        current_slot: Optional[str] = None,
    ) -> Candidate:
        snap = self.snapshot
        row = None
        if self.projections is not None:
            row = self.projections.lookup(player.player_id, player.name, player.team, player.position)
        return build_candidate(
            player,
            row,
            snap.scoring_rules,
            self.schedule,
            self.now,
            source=source,
            current_slot=current_slot,
            actual_points=snap.actual_points.get(player.player_id),
            played=player.player_id in snap.played_player_ids,
            platform_projection=snap.platform_projections.get(player.player_id),
        )


def _roster_candidates(
    roster: RosterSnapshot,
    slots: Sequence[str],
    make: _CandidateFactory,
) -> Tuple[List[Optional[Candidate]], List[Candidate], List[Candidate]]:
    """(starters aligned with slots, bench, IR) as candidates."""
    starters: List[Optional[Candidate]] = []
    for i, slot in enumerate(slots):
        rec = roster.starters[i] if i < len(roster.starters) else None
        starters.append(make(rec, Source.STARTER, current_slot=slot) if rec is not None else None)
    bench = [make(p, Source.BENCH) for p in roster.bench]
    reserve = [make(p, Source.IR) for p in roster.reserve]
    return starters, bench, reserve


def _bench_pool(
    starters: Sequence[Optional[Candidate]],
    bench: Sequence[Candidate],
    reserve: Sequence[Candidate],
) -> List[Candidate]:
    """Starters, then bench, then IR players who aren't OUT."""
    pool = [c for c in starters if c is not None]
    pool.extend(bench)
    pool.extend(c for c in reserve if c.tag != Availability.OUT)
    return pool


# ---------------------------------------------------------------------------
# Three-tier analysis
# ---------------------------------------------------------------------------


def _opponent_projection(
    snapshot: LeagueSnapshot,
    slots: Sequence[str],
    make: _CandidateFactory,
    my_total: float,
    opponent_optimal: bool,
) -> Optional[MatchupProjection]:
    opp = snapshot.opponent
    if opp is None:
        return None
    starters, bench, reserve = _roster_candidates(opp, slots, make)
    if opponent_optimal:
        capacity = build_slot_capacity(snapshot.roster_positions)
        total = optimize(capacity, _bench_pool(starters, bench, reserve)).total
    else:
        total = assignment_from_lineup(slots, starters).total
    return MatchupProjection(opponent_name=opp.owner, opponent_total=total, my_total=my_total)


def analyze_league(
    snapshot: LeagueSnapshot,
    projections: Optional[ProjectionIndex],
    schedule: Mapping[str, GameInfo],
    now: Optional[datetime] = None,
    min_gain: float = WAIVER_MIN_GAIN,
    opponent_optimal: bool = OPPONENT_OPTIMAL,
    max_waiver_groups: int = MAX_WAIVER_GROUPS,
) -> LeagueAnalysis:
    """
    Run the engine for one league and week.

      current        - the platform lineup as set
      bench_optimal  - best lineup from starters + bench + playable IR
      waiver_optimal - best lineup once the free-agent pool is added
      full_total     - bench_optimal ignoring locks (what could have been)

    Pure given its inputs; every optimizer result is validated.
    """
    now = now or datetime.now(tz=timezone.utc)
    capacity = build_slot_capacity(snapshot.roster_positions)
    slots = starting_slots(snapshot.roster_positions)
    make = _CandidateFactory(snapshot, projections, schedule, now)

    starters, bench, reserve = _roster_candidates(snapshot.roster, slots, make)
    current = assignment_from_lineup(slots, starters)

    pool = _bench_pool(starters, bench, reserve)
    bench_optimal = optimize(capacity, pool)
    validate_assignment(bench_optimal, capacity)

    full = optimize(capacity, pool, respect_locks=False)
    validate_assignment(full, capacity)

    fa_candidates = [make(p, Source.FA) for p in snapshot.free_agents]
    fa_pool = build_free_agent_pool(fa_candidates, snapshot.owned_player_ids)
    waiver_optimal = optimize(capacity, pool + fa_pool)
    validate_assignment(waiver_optimal, capacity)

    bench_moves = build_bench_moves(current, bench_optimal)
    waivers = build_waiver_suggestions(
        bench_optimal, fa_pool, snapshot.owned_player_ids, min_gain=min_gain
    )
    groups = group_waiver_suggestions(
        waivers, bench_optimal, min_gain=min_gain, limit=max_waiver_groups
    )
    auto_subs = build_auto_subs(
        current, bench, schedule, require_later_start=snapshot.autosub_require_later_start
    )

    availability = summarize_starters((s.label, s.candidate) for s in current.assignment)
    matchup = _opponent_projection(snapshot, slots, make, bench_optimal.total, opponent_optimal)

    missing = sum(1 for c in pool if c.missing_projection)
    if missing:
        logger.debug("%s: %d rostered players without projections", snapshot.league_key, missing)
    logger.info(
        "%s week %s (%s): current %.1f, bench-optimal %.1f, waiver-optimal %.1f",
        snapshot.league_key, snapshot.week, format_label(snapshot.scoring_rules),
        current.total, bench_optimal.total, waiver_optimal.total,
    )

    return LeagueAnalysis(
        league_key=snapshot.league_key,
        league_name=snapshot.league_name,
        week=snapshot.week,
        owner=snapshot.roster.owner,
        capacity=capacity,
        current=current,
        bench_optimal=bench_optimal,
        waiver_optimal=waiver_optimal,
        full_total=full.total,
        bench_moves=tuple(bench_moves),
        waiver_suggestions=tuple(waivers),
        waiver_groups=tuple(groups),
        availability=availability,
        matchup=matchup,
        auto_subs=tuple(auto_subs),
    )


# ---------------------------------------------------------------------------
# Fetch + run
# ---------------------------------------------------------------------------

# (csv path, season, week) -> (loaded at, csv mtime, index)
_INDEX_CACHE: Dict[Tuple[str, int, int], Tuple[float, float, ProjectionIndex]] = {}
_INDEX_LOCK = threading.Lock()


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def get_projection_index(
    week: Optional[int] = None,
    store: Optional[KeyValueStore] = None,
    path: Any = None,
    season: int = SEASON_YEAR,
) -> ProjectionIndex:
    """
    Projection index for one week, cached per (CSV path, season, week).

    The CSV defaults to config.projections_csv_path(week). A cached index is
    reloaded when the file changes or after PROJECTION_CACHE_SECONDS. With a
    store, a readable CSV is also saved to it, and a missing CSV falls back to
    the last rows saved for that week.
    """
    week = week or CURRENT_WEEK
    csv_path = Path(path) if path is not None else projections_csv_path(week, season)
    key = (str(csv_path), season, week)
    mtime = _mtime(csv_path)

    # One loader at a time; batch workers asking for the same week wait for
    # the first load instead of repeating it.
    with _INDEX_LOCK:
        cached = _INDEX_CACHE.get(key)
        if cached is not None and mtime is not None:
            loaded_at, seen_mtime, index = cached
            if seen_mtime == mtime and time.monotonic() - loaded_at < PROJECTION_CACHE_SECONDS:
                return index

        if mtime is None:
            _INDEX_CACHE.pop(key, None)
            rows = (load_projections(store, season, week) if store is not None else None) or []
            logger.warning("Projection file %s not found; %d cached rows", csv_path, len(rows))
            return ProjectionIndex(rows)

        rows = load_projection_csv(csv_path)
        if store is not None:
            save_projections(store, season, week, rows)
        index = ProjectionIndex(rows)
        _INDEX_CACHE[key] = (time.monotonic(), mtime, index)
        logger.info("Loaded %d projections for week %s from %s", len(rows), week, csv_path)
        return index


def league_config(league_key: str) -> Dict[str, Any]:
    cfg = LEAGUES.get(league_key)
    if cfg is None:
        raise UnknownLeagueError(league_key)
    return cfg


def fetch_league_snapshot(league_key: str, week: Optional[int] = None) -> LeagueSnapshot:
    """Dispatch to the platform adapter named in the league's config."""
    cfg = league_config(league_key)
    platform = str(cfg.get("platform", "espn")).lower()
    if platform == "espn":
        from espn_adapter import fetch_espn_snapshot  # type: ignore[import]

        return fetch_espn_snapshot(league_key, cfg, week=week)
    if platform == "sleeper":
        from sleeper_adapter import fetch_sleeper_snapshot  # type: ignore[import]

        return fetch_sleeper_snapshot(league_key, cfg, week=week)
    raise ValueError(f"Unknown platform {platform!r} for league {league_key}")


def run_league(
    league_key: str,
    week: Optional[int] = None,
    now: Optional[datetime] = None,
    store: Optional[KeyValueStore] = None,
) -> LeagueAnalysis:
    """Fetch, then analyze, one configured league with that week's projections."""
    week = week or CURRENT_WEEK
    snapshot = fetch_league_snapshot(league_key, week=week)
    schedule = fetch_week_schedule(SEASON_YEAR, week)
    projections = get_projection_index(week, store=store)
    return analyze_league(snapshot, projections, schedule, now=now)


def analysis_to_dict(analysis: LeagueAnalysis) -> Dict[str, Any]:
    """JSON-serializable form, with the derived deltas and slot counts."""
    out = asdict(analysis)
    out["capacity"] = analysis.capacity.as_dict()
    out["delta_bench"] = analysis.delta_bench
    out["delta_waiver"] = analysis.delta_waiver
    return out


# ---------------------------------------------------------------------------
# CLI entrypoint
# ---------------------------------------------------------------------------


def setup_logging(verbose: bool = False) -> None:
    """Log to stdout; DEBUG with --verbose."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", "%H:%M:%S")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def _fmt(c: Optional[Candidate]) -> str:
    if c is None:
        return "[EMPTY]"
    return f"{c.name:<22} {c.position:3}  PROJ {c.value:5.1f}  [{c.tag.value}]"


def print_lineup_report(analysis: LeagueAnalysis) -> None:
    """Pretty-print one league's analysis."""
    a = analysis
    print(
        f"\n========= ROSTERPILOT - OPTIMAL STARTERS (WEEK {a.week}) "
        f"[{a.league_name} / {a.owner}] ========="
    )
    current_ids = a.current.player_ids()
    for s in a.bench_optimal.assignment:
        c = s.candidate
        flag = ""
        if c is not None:
            flag = "(START)" if c.player_id in current_ids else "(BENCH→START)"
        print(f"{s.label:10} -> {_fmt(c)}  {flag}")

    print(f"\nCURRENT LINEUP:        {a.current.total:6.1f}")
    print(f"BENCH-OPTIMAL:         {a.bench_optimal.total:6.1f}  (+{a.delta_bench:.1f})")
    print(f"WAIVER-OPTIMAL:        {a.waiver_optimal.total:6.1f}  (+{a.delta_waiver:.1f})")
    print(f"IGNORING LOCKS:        {a.full_total:6.1f}")

    if a.matchup is not None:
        m = a.matchup
        print(
            f"VS {m.opponent_name}: {m.my_total:.1f} - {m.opponent_total:.1f} "
            f"({m.result}, {m.margin:+.1f})"
        )

    print("\n============ STARTER AVAILABILITY ============")
    if not a.availability.not_playing and not a.availability.questionable:
        print("Every starter is expected to play.")
    for slot, name, tag in a.availability.not_playing:
        print(f"{slot:10} {name or '[EMPTY]':<22} {tag.value}")
    for slot, name in a.availability.questionable:
        print(f"{slot:10} {name:<22} QUESTIONABLE")

    print("\n========== SUGGESTED BENCH → STARTER MOVES ==========")
    if not a.bench_moves:
        print("Your current lineup is already optimal.")
    for mv in a.bench_moves:
        out = mv.outgoing.name if mv.outgoing is not None else "[EMPTY]"
        ir = " (from IR)" if mv.from_ir else ""
        print(f"START {mv.incoming.name:<20}{ir} at {mv.slot:8} > BENCH {out:<20} (+{mv.gain:.1f} pts)")

    print("\n========== WAIVER-WIRE UPGRADES ==========")
    if not a.waiver_groups:
        print("No free agents clearly improve your starting lineup.")
    for g in a.waiver_groups:
        b = g.best
        out = b.outgoing.name if b.outgoing is not None else "[EMPTY]"
        print(
            f"ADD {g.incoming.name:<20} ({g.incoming.position}) at {b.slot:8} "
            f"> {out:<20} (+{b.gain:.1f} pts)"
        )
        for alt in g.alternatives:
            alt_out = alt.outgoing.name if alt.outgoing is not None else "[EMPTY]"
            print(f"      or at {alt.slot:8} > {alt_out:<20} (+{alt.gain:.1f} pts)")

    if a.auto_subs:
        print("\n========== AUTO-SUBS FOR QUESTIONABLE STARTERS ==========")
        for sub in a.auto_subs:
            print(f"{sub.slot:8} {sub.starter.name:<20} (Q)")
            for opt in sub.options:
                print(f"      sub {opt.candidate.name:<20} {opt.reason}")

    print("\n============================================================\n")


if __name__ == "__main__":
    import argparse
    import json

    parser = argparse.ArgumentParser(
        description="RosterPilot: optimize the lineup for one of your fantasy leagues."
    )
    parser.add_argument(
        "--league",
        "-l",
        default=DEFAULT_LEAGUE_KEY,
        help=f"League key from config.LEAGUES (default: {DEFAULT_LEAGUE_KEY})",
    )
    parser.add_argument("--week", "-w", type=int, default=None, help="NFL week (default: config)")
    parser.add_argument(
        "--json-out",
        help="If set, write the analysis as JSON to this file instead of pretty-printing.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")

    args = parser.parse_args()
    setup_logging(args.verbose)
    store = SqliteKeyValueStore()
    analysis = run_league(args.league, week=args.week, store=store)

    if args.json_out:
        with open(args.json_out, "w") as f:
            json.dump(analysis_to_dict(analysis), f, indent=2, default=str)
        print(f"Wrote league analysis to {args.json_out}")
    else:
        print_lineup_report(analysis)
