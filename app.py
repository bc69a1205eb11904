# app.py
#
# FastAPI wrapper around the RosterPilot engine.
# Exposes:
#   GET /health
#   GET /leagues
#   GET /leagues/{league_key}/analysis
#   GET /analysis
#   GET /preferences
#   PUT /preferences
#
# Start with:
#   uvicorn app:app --reload

import logging
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException  # type: ignore[import]
from fastapi.middleware.cors import CORSMiddleware  # type: ignore[import]
from pydantic import BaseModel  # type: ignore[import]

from config import CURRENT_WEEK, LEAGUES, SEASON_YEAR  # type: ignore[import]
from league_batch import analyze_configured_leagues  # type: ignore[import]
from lineup_report import UnknownLeagueError, run_league  # type: ignore[import]
from models import (  # type: ignore[import]
    Candidate,
    LeagueAnalysis,
    OptimizationResult,
    PlatformError,
)
from storage import (  # type: ignore[import]
    KeyValueStore,
    SqliteKeyValueStore,
    load_preferences,
    save_preferences,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic view models
# ---------------------------------------------------------------------------

class PlayerView(BaseModel):
    player_id: str
    name: str
    position: str                 # QB / RB / WR / TE / K / DEF / ...
    nfl_team: Optional[str] = None
    projection: float             # league-scored projection
    value: float                  # what the optimizer counted
    status: str                   # STARTING / QUESTIONABLE / OUT / BYE / LOCKED
    source: str                   # STARTER / BENCH / IR / FA
    injury_status: Optional[str] = None
    actual_points: Optional[float] = None


class SlotView(BaseModel):
    slot: str                     # QB, RB2, FLEX, etc.
    player: Optional[PlayerView] = None


class LineupView(BaseModel):
    total: float
    slots: List[SlotView]


class BenchMoveView(BaseModel):
    slot: str
    start: PlayerView
    bench: Optional[PlayerView] = None
    gain: float
    from_ir: bool


class WaiverView(BaseModel):
    slot: str
    add: PlayerView
    replaces: Optional[PlayerView] = None
    gain: float
    reason: Optional[str] = None  # human-readable explanation


class WaiverGroupView(BaseModel):
    add: PlayerView
    best: WaiverView
    alternatives: List[WaiverView]


class AvailabilityView(BaseModel):
    not_playing: List[str]        # "RB2: Name (BYE)"
    questionable: List[str]


class AutoSubOptionView(BaseModel):
    sub: PlayerView
    gain: float
    reason: str


class AutoSubView(BaseModel):
    slot: str
    starter: PlayerView
    options: List[AutoSubOptionView]


class MatchupView(BaseModel):
    opponent: str
    my_total: float
    opponent_total: float
    result: str                   # W / L
    margin: float


class LeagueAnalysisView(BaseModel):
    league_key: str
    league_name: str
    week: int
    owner: str
    slot_counts: Dict[str, int]   # slot type -> starting instances
    current: LineupView
    bench_optimal: LineupView
    waiver_optimal: LineupView
    full_total: float
    delta_bench: float
    delta_waiver: float
    bench_moves: List[BenchMoveView]
    waiver_suggestions: List[WaiverView]
    waiver_groups: List[WaiverGroupView]
    availability: AvailabilityView
    matchup: Optional[MatchupView] = None
    auto_subs: List[AutoSubView] = []


class LeagueFailureView(BaseModel):
    league_key: str
    error: str


class BatchView(BaseModel):
    week: int
    summary: str
    analyses: List[LeagueAnalysisView]
    failures: List[LeagueFailureView]


class LeagueView(BaseModel):
    key: str
    platform: str
    league_id: str
    season_year: int


class Preferences(BaseModel):
    # None = use the config default
    exclude_dynasty: Optional[bool] = None
    opponent_optimal: Optional[bool] = None
    waiver_min_gain: Optional[float] = None
    league_keys: List[str] = []


# ---------------------------------------------------------------------------
# Helper functions to map engine results -> API models
# ---------------------------------------------------------------------------

def _player_view(c: Optional[Candidate]) -> Optional[PlayerView]:
    if c is None:
        return None
    return PlayerView(
        player_id=c.player_id,
        name=c.name,
        position=c.position,
        nfl_team=c.team,
        projection=round(c.projection, 2),
        value=round(c.value, 2),
        status=c.tag.value,
        source=c.source.value,
        injury_status=c.injury_status,
        actual_points=c.actual_points,
    )


def _lineup_view(result: OptimizationResult) -> LineupView:
    return LineupView(
        total=round(result.total, 2),
        slots=[SlotView(slot=s.label, player=_player_view(s.candidate)) for s in result.assignment],
    )


def _waiver_view(w) -> WaiverView:
    out = w.outgoing.name if w.outgoing is not None else "an empty slot"
    return WaiverView(
        slot=w.slot,
        add=_player_view(w.incoming),
        replaces=_player_view(w.outgoing),
        gain=round(w.gain, 2),
        reason=f"Add {w.incoming.name} at {w.slot} over {out} (+{w.gain:.1f} pts)",
    )


def analysis_view(a: LeagueAnalysis) -> LeagueAnalysisView:
    """Map a LeagueAnalysis into the API shape."""
    matchup = None
    if a.matchup is not None:
        matchup = MatchupView(
            opponent=a.matchup.opponent_name,
            my_total=round(a.matchup.my_total, 2),
            opponent_total=round(a.matchup.opponent_total, 2),
            result=a.matchup.result,
            margin=round(a.matchup.margin, 2),
        )

    return LeagueAnalysisView(
        league_key=a.league_key,
        league_name=a.league_name,
        week=a.week,
        owner=a.owner,
        slot_counts=a.capacity.as_dict(),
        current=_lineup_view(a.current),
        bench_optimal=_lineup_view(a.bench_optimal),
        waiver_optimal=_lineup_view(a.waiver_optimal),
        full_total=round(a.full_total, 2),
        delta_bench=round(a.delta_bench, 2),
        delta_waiver=round(a.delta_waiver, 2),
        bench_moves=[
            BenchMoveView(
                slot=m.slot,
                start=_player_view(m.incoming),
                bench=_player_view(m.outgoing),
                gain=round(m.gain, 2),
                from_ir=m.from_ir,
            )
            for m in a.bench_moves
        ],
        waiver_suggestions=[_waiver_view(w) for w in a.waiver_suggestions],
        waiver_groups=[
            WaiverGroupView(
                add=_player_view(g.incoming),
                best=_waiver_view(g.best),
                alternatives=[_waiver_view(w) for w in g.alternatives],
            )
            for g in a.waiver_groups
        ],
        availability=AvailabilityView(
            not_playing=[
                f"{slot}: {name or 'EMPTY'} ({tag.value})" for slot, name, tag in a.availability.not_playing
            ],
            questionable=[f"{slot}: {name}" for slot, name in a.availability.questionable],
        ),
        matchup=matchup,
        auto_subs=[
            AutoSubView(
                slot=s.slot,
                starter=_player_view(s.starter),
                options=[
                    AutoSubOptionView(sub=_player_view(o.candidate), gain=round(o.gain, 2), reason=o.reason)
                    for o in s.options
                ],
            )
            for s in a.auto_subs
        ],
    )


# ---------------------------------------------------------------------------
# FastAPI app + routes
# ---------------------------------------------------------------------------

app = FastAPI(title="RosterPilot API")

# Optional: allow local dev frontends.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # you can restrict this later
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STORE: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    global _STORE
    if _STORE is None:
        _STORE = SqliteKeyValueStore()
    return _STORE


@app.get("/health")
def health():
    return {"status": "ok", "season": SEASON_YEAR, "week": CURRENT_WEEK}


@app.get("/leagues", response_model=List[LeagueView])
def list_leagues():
    """
    All configured leagues. Drives the 'all my leagues' view.
    """
    return [
        LeagueView(
            key=key,
            platform=cfg["platform"],
            league_id=str(cfg["league_id"]),
            season_year=int(cfg.get("season_year", SEASON_YEAR)),
        )
        for key, cfg in LEAGUES.items()
    ]


@app.get("/leagues/{league_key}/analysis", response_model=LeagueAnalysisView)
def get_league_analysis(
    league_key: str,
    week: Optional[int] = None,
    store: KeyValueStore = Depends(get_store),
):
    """
    Current / bench-optimal / waiver-optimal lineups and every suggested move
    for one league.
    """
    try:
        analysis = run_league(league_key, week=week, store=store)
    except UnknownLeagueError:
        raise HTTPException(status_code=404, detail="Unknown league_key")
    except PlatformError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return analysis_view(analysis)


@app.get("/analysis", response_model=BatchView)
def get_all_analyses(week: Optional[int] = None, store: KeyValueStore = Depends(get_store)):
    """
    Cross-league view. Leagues that fail are listed under `failures`; the rest
    still come back.
    """
    prefs = load_preferences(store)
    keys = [k for k in prefs.get("league_keys") or [] if k in LEAGUES] or None
    report = analyze_configured_leagues(keys, week=week, prefs=prefs, store=store)
    return BatchView(
        week=week or CURRENT_WEEK,
        summary=report.summary(),
        analyses=[analysis_view(a) for a in report.analyses],
        failures=[LeagueFailureView(league_key=f.league_key, error=f.error) for f in report.failures],
    )


@app.get("/preferences", response_model=Preferences)
def get_preferences(store: KeyValueStore = Depends(get_store)):
    return Preferences(**load_preferences(store))


@app.put("/preferences", response_model=Preferences)
def put_preferences(req: Preferences, store: KeyValueStore = Depends(get_store)):
    unknown = [k for k in req.league_keys if k not in LEAGUES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown league keys: {', '.join(unknown)}")
    return Preferences(**save_preferences(store, req.dict(exclude_unset=True)))
