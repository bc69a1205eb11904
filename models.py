# models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple


class Availability(str, Enum):
    STARTING = "STARTING"
    QUESTIONABLE = "QUESTIONABLE"
    OUT = "OUT"
    BYE = "BYE"
    EMPTY = "EMPTY"
    LOCKED = "LOCKED"


class Source(str, Enum):
    STARTER = "STARTER"
    BENCH = "BENCH"
    IR = "IR"
    FA = "FA"


@dataclass(frozen=True)
class PlayerRecord:
    """A player as the fantasy platform describes them, before projections."""
    player_id: str
    name: str
    position: str                 # QB, RB, WR, TE, K, DEF, DL, LB, DB
    team: Optional[str] = None    # NFL team abbreviation
    injury_status: Optional[str] = None
    alt_positions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProjectionRow:
    player_id: Optional[str]
    name: str
    position: str
    projection: float             # fallback point projection
    team: Optional[str] = None
    opponent: Optional[str] = None  # "BYE" flags a bye week
    stats: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class GameInfo:
    start: datetime
    state: str = "pre"            # pre, in, post


@dataclass(frozen=True)
class Candidate:
    player_id: str
    name: str
    position: str
    projection: float             # league-scored projection
    value: float                  # what the optimizer adds up
    tag: Availability = Availability.STARTING
    source: Source = Source.BENCH
    team: Optional[str] = None
    alt_positions: Tuple[str, ...] = ()
    current_slot: Optional[str] = None  # slot occupied in the platform lineup
    actual_points: Optional[float] = None
    injury_status: Optional[str] = None
    missing_projection: bool = False

    @property
    def positions(self) -> Tuple[str, ...]:
        return (self.position,) + tuple(p for p in self.alt_positions if p != self.position)

    @property
    def locked(self) -> bool:
        return self.tag == Availability.LOCKED

    @property
    def is_free_agent(self) -> bool:
        return self.source == Source.FA


@dataclass(frozen=True)
class SlotCapacity:
    """Ordered slot type -> instance count table for one league and week."""
    counts: Tuple[Tuple[str, int], ...]

    def __getitem__(self, slot: str) -> int:
        for name, n in self.counts:
            if name == slot:
                return n
        return 0

    def __contains__(self, slot: object) -> bool:
        return any(name == slot for name, _ in self.counts)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.counts)

    @property
    def total(self) -> int:
        return sum(n for _, n in self.counts)

    def as_dict(self) -> Dict[str, int]:
        return dict(self.counts)

    def instances(self) -> List[Tuple[str, int]]:
        """Every slot instance as (slot type, ordinal), in table order."""
        return [(name, i) for name, n in self.counts for i in range(n)]


@dataclass(frozen=True)
class SlotAssignment:
    slot: str
    ordinal: int
    candidate: Optional[Candidate] = None

    @property
    def label(self) -> str:
        return self.slot if self.ordinal == 0 else f"{self.slot}{self.ordinal + 1}"


@dataclass(frozen=True)
class OptimizationResult:
    assignment: Tuple[SlotAssignment, ...]
    total: float

    def candidates(self) -> List[Candidate]:
        return [s.candidate for s in self.assignment if s.candidate is not None]

    def player_ids(self) -> FrozenSet[str]:
        return frozenset(c.player_id for c in self.candidates())

    def slot_of(self, player_id: str) -> Optional[SlotAssignment]:
        for s in self.assignment:
            if s.candidate is not None and s.candidate.player_id == player_id:
                return s
        return None


@dataclass(frozen=True)
class BenchMove:
    incoming: Candidate
    outgoing: Optional[Candidate]
    slot: str
    gain: float

    @property
    def fills_empty(self) -> bool:
        return self.outgoing is None

    @property
    def from_ir(self) -> bool:
        return self.incoming.source == Source.IR


@dataclass(frozen=True)
class WaiverSuggestion:
    incoming: Candidate
    outgoing: Optional[Candidate]
    slot: str
    gain: float


@dataclass(frozen=True)
class WaiverGroup:
    """One free agent with the best slot they upgrade and every alternative."""
    incoming: Candidate
    best: WaiverSuggestion
    alternatives: Tuple[WaiverSuggestion, ...] = ()

    @property
    def best_gain(self) -> float:
        return self.best.gain


@dataclass(frozen=True)
class AutoSubOption:
    candidate: Candidate
    gain: float                   # over the starter; may be negative
    reason: str


@dataclass(frozen=True)
class AutoSub:
    """Bench fallbacks for a questionable starter, best first."""
    starter: Candidate
    slot: str
    options: Tuple[AutoSubOption, ...] = ()


@dataclass(frozen=True)
class AvailabilitySummary:
    not_playing: Tuple[Tuple[str, Optional[str], Availability], ...] = ()   # (slot, name, tag)
    questionable: Tuple[Tuple[str, str], ...] = ()                          # (slot, name)

    @property
    def not_playing_count(self) -> int:
        return len(self.not_playing)

    @property
    def questionable_count(self) -> int:
        return len(self.questionable)


@dataclass(frozen=True)
class MatchupProjection:
    opponent_name: str
    opponent_total: float
    my_total: float

    @property
    def margin(self) -> float:
        return self.my_total - self.opponent_total

    @property
    def result(self) -> str:
        return "W" if self.my_total >= self.opponent_total else "L"


@dataclass(frozen=True)
class RosterSnapshot:
    owner: str
    starters: Tuple[Optional[PlayerRecord], ...]   # aligned with starting slots
    bench: Tuple[PlayerRecord, ...] = ()
    reserve: Tuple[PlayerRecord, ...] = ()         # IR


@dataclass(frozen=True)
class LeagueSnapshot:
    """Everything the engine needs about one league for one week."""
    league_key: str
    league_name: str
    week: int
    roster_positions: Tuple[str, ...]
    scoring_rules: Mapping[str, float]
    roster: RosterSnapshot
    owned_player_ids: FrozenSet[str] = frozenset()
    free_agents: Tuple[PlayerRecord, ...] = ()
    actual_points: Mapping[str, float] = field(default_factory=dict)
    played_player_ids: FrozenSet[str] = frozenset()
    opponent: Optional[RosterSnapshot] = None
    platform_projections: Mapping[str, float] = field(default_factory=dict)
    best_ball: bool = False
    dynasty: bool = False
    autosub_require_later_start: bool = False   # a sub may not kick off before the starter


@dataclass(frozen=True)
class LeagueAnalysis:
    league_key: str
    league_name: str
    week: int
    owner: str
    capacity: SlotCapacity
    current: OptimizationResult
    bench_optimal: OptimizationResult
    waiver_optimal: OptimizationResult
    full_total: float
    bench_moves: Tuple[BenchMove, ...]
    waiver_suggestions: Tuple[WaiverSuggestion, ...]
    waiver_groups: Tuple[WaiverGroup, ...]
    availability: AvailabilitySummary
    matchup: Optional[MatchupProjection] = None
    auto_subs: Tuple[AutoSub, ...] = ()

    @property
    def delta_bench(self) -> float:
        return max(0.0, self.bench_optimal.total - self.current.total)

    @property
    def delta_waiver(self) -> float:
        return max(0.0, self.waiver_optimal.total - self.bench_optimal.total)


@dataclass(frozen=True)
class LeagueFailure:
    league_key: str
    error: str


@dataclass
class BatchReport:
    analyses: List[LeagueAnalysis] = field(default_factory=list)
    failures: List[LeagueFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.analyses) + len(self.failures)

    def summary(self) -> str:
        return f"{len(self.analyses)} of {self.attempted} leagues analyzed"


class PlatformError(RuntimeError):
    """A fantasy platform (or its client library) failed to return a league."""
