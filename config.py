# config.py
from pathlib import Path
from typing import Dict, Any
import os

# ====== Season config ======
SEASON_YEAR: int = int(os.environ.get("ROSTERPILOT_SEASON", "2025"))
CURRENT_WEEK: int = int(os.environ.get("ROSTERPILOT_WEEK", "14"))

DATA_ROOT = Path(os.environ.get("ROSTERPILOT_DATA_ROOT", "data"))

# Weekly projection CSVs. One row per player; see projections.COLUMN_ALIASES
# for the accepted header spellings. {season} and {week} are filled per run.
PROJECTIONS_CSV_TEMPLATE: str = os.environ.get(
    "ROSTERPILOT_PROJECTIONS",
    str(DATA_ROOT / "projections_{season}_w{week}.csv"),
)


def projections_csv_path(week: int, season: int = SEASON_YEAR) -> Path:
    return Path(PROJECTIONS_CSV_TEMPLATE.format(season=season, week=week))


# A loaded projection index is reused for this long unless its CSV changes.
PROJECTION_CACHE_SECONDS: float = float(os.environ.get("ROSTERPILOT_PROJECTION_CACHE", "900"))

# Key-value store for preferences and cached projections.
STORE_PATH: Path = Path(
    os.environ.get("ROSTERPILOT_STORE_PATH", str(DATA_ROOT / "rosterpilot.db"))
)

# ====== Engine tuning ======
# Free agents must beat the slot's occupant by at least this many points.
WAIVER_MIN_GAIN: float = float(os.environ.get("ROSTERPILOT_WAIVER_MIN_GAIN", "1.5"))
# Positions never suggested off the waiver wire.
WAIVER_EXCLUDED_POSITIONS = frozenset({"K"})
# Per-position cap on the free-agent pool fed to the optimizer.
MAX_FA_PER_POSITION: int = 10
# How many free agents an adapter pulls from the platform.
FREE_AGENT_FETCH_SIZE: int = 50
# How many grouped waiver players to surface per league.
MAX_WAIVER_GROUPS: int = 8
# Bench subs suggested per questionable starter.
MAX_AUTO_SUBS: int = 2

# Compare against the opponent's optimal lineup instead of their current one.
OPPONENT_OPTIMAL: bool = os.environ.get("ROSTERPILOT_OPPONENT_OPTIMAL", "0") == "1"

# League filtering.
EXCLUDE_BEST_BALL: bool = True
EXCLUDE_DYNASTY: bool = os.environ.get("ROSTERPILOT_EXCLUDE_DYNASTY", "0") == "1"

# ====== Batch analysis ======
# Bounded by the platforms' rate limits, not by CPU.
MAX_WORKERS: int = int(os.environ.get("ROSTERPILOT_MAX_WORKERS", "4"))
LEAGUE_TIMEOUT_SECONDS: float = float(os.environ.get("ROSTERPILOT_LEAGUE_TIMEOUT", "30"))
HTTP_TIMEOUT_SECONDS: float = 15.0

# ====== Platform credentials ======
# Never hard-code cookies; provide them via environment variables.
ESPN_S2: str = os.environ.get("ESPN_S2", "")
ESPN_SWID: str = os.environ.get("ESPN_SWID", "")
SLEEPER_USERNAME: str = os.environ.get("SLEEPER_USERNAME", "")


# ====== Leagues ======
LEAGUES: Dict[str, Dict[str, Any]] = {
    "cant_teach_matchups": {
        "platform": "espn",
        "league_id": 43572092,
        "season_year": SEASON_YEAR,
        "team_name_keyword": "Can't Teach Matchups",
        "espn_s2": ESPN_S2,
        "espn_swid": ESPN_SWID,
    },
    "stinky_steinerts": {
        "platform": "espn",
        "league_id": 232132462,
        "season_year": SEASON_YEAR,
        "team_name_keyword": "Stinky Steinerts",
        "espn_s2": ESPN_S2,
        "espn_swid": ESPN_SWID,
    },
    "sleeper_home": {
        "platform": "sleeper",
        "league_id": "1048312217046433792",
        "season_year": SEASON_YEAR,
        "username": SLEEPER_USERNAME,
    },
}

DEFAULT_LEAGUE_KEY: str = "cant_teach_matchups"
