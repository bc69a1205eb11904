# projections.py
#
# Weekly projection feed: read a projection CSV (any of the usual header
# spellings), coerce every number, and index rows for lookup by platform
# player id or by name/team/position.

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Union

import pandas as pd  # type: ignore[import]

from models import ProjectionRow  # type: ignore[import]
from slot_rules import normalize_position  # type: ignore[import]

logger = logging.getLogger(__name__)

# Header spellings -> canonical column names.
COLUMN_ALIASES: Dict[str, str] = {
    "sleeper_id": "player_id",
    "player_id": "player_id",
    "id": "player_id",
    "name": "name",
    "player": "name",
    "player_name": "name",
    "full_name": "name",
    "team": "team",
    "pos": "pos",
    "position": "pos",
    "proj": "proj",
    "projection": "proj",
    "projections": "proj",
    "fpts": "proj",
    "opp": "opp",
    "opponent": "opp",
}

# Stat columns -> the stat keys league scoring rules use.
STAT_ALIASES: Dict[str, str] = {
    "pass_att": "pass_att",
    "pass_comp": "pass_cmp",
    "pass_cmp": "pass_cmp",
    "pass_yd": "pass_yd",
    "pass_td": "pass_td",
    "pass_int": "pass_int",
    "rush_att": "rush_att",
    "rush_yd": "rush_yd",
    "rush_td": "rush_td",
    "rec": "rec",
    "rec_yd": "rec_yd",
    "rec_td": "rec_td",
    "fum_lost": "fum_lost",
    "two_pt": "pass_2pt",
    "pass_2pt": "pass_2pt",
    "rush_2pt": "rush_2pt",
    "rec_2pt": "rec_2pt",
    "xpm": "xpm",
    "xpa": "xpa",
    "fgm_0_19": "fgm_0_19",
    "fgm_20_29": "fgm_20_29",
    "fgm_30_39": "fgm_30_39",
    "fgm_40_49": "fgm_40_49",
    "fgm_50p": "fgm_50p",
    "sacks": "sack",
    "sack": "sack",
    "defs_int": "int",
    "def_int": "int",
    "defs_fum_rec": "fum_rec",
    "fum_rec": "fum_rec",
    "defs_td": "def_td",
    "def_td": "def_td",
    "safety": "safe",
    "safe": "safe",
    "blk_kick": "blk_kick",
    "ret_td": "def_st_td",
    "pts_allowed": "pts_allow",
    "pts_allow": "pts_allow",
}


def _norm_name(raw: Any) -> str:
    """
    Normalise a player name into a comparable bare name.

      "Jordan Love (GB)"      -> "jordan love"
      "Kenneth Walker III SEA"-> "kenneth walker"
      "D.J. Moore"            -> "dj moore"

    Drops anything in parentheses, a trailing team code, generational
    suffixes and periods.
    """
    if not isinstance(raw, str):
        return ""

    if "(" in raw:
        raw = raw.split("(", 1)[0]

    parts = raw.split()

    if len(parts) > 1 and parts[-1].isupper() and 2 <= len(parts[-1]) <= 3:
        parts = parts[:-1]

    SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "v"}
    while len(parts) > 1 and parts[-1].rstrip(".").lower() in SUFFIXES:
        parts = parts[:-1]

    return " ".join(parts).replace(".", "").strip().lower()


def _clean_str(v: Any) -> Optional[str]:
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return None
    s = str(v).strip()
    return s or None


def _coerce_numeric(series: pd.Series) -> pd.Series:
    """Strip thousands commas; anything unparseable (NA, n/a, blank) -> 0."""
    cleaned = series.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(cleaned, errors="coerce").fillna(0.0).astype(float)


def load_projection_csv(source: Union[str, Path, IO[str]]) -> List[ProjectionRow]:
    """
    Parse a projection CSV into ProjectionRows.

    Headers are matched case-insensitively through COLUMN_ALIASES and
    STAT_ALIASES; unrecognized columns are ignored. Rows without a name or
    player id are dropped. Numeric cells that don't parse count as 0.
    """
    df = pd.read_csv(source, dtype=str, skip_blank_lines=True)
    df.columns = [str(c).strip().lower() for c in df.columns]

    rename: Dict[str, str] = {}
    stat_cols: Dict[str, str] = {}
    for col in df.columns:
        if col in COLUMN_ALIASES and COLUMN_ALIASES[col] not in rename.values():
            rename[col] = COLUMN_ALIASES[col]
        elif col in STAT_ALIASES:
            stat_cols[col] = STAT_ALIASES[col]
    df = df.rename(columns=rename)

    df["proj"] = _coerce_numeric(df["proj"]) if "proj" in df.columns else 0.0
    for col in stat_cols:
        df[col] = _coerce_numeric(df[col])

    rows: List[ProjectionRow] = []
    for rec in df.to_dict(orient="records"):
        player_id = _clean_str(rec.get("player_id"))
        name = _clean_str(rec.get("name"))
        if not name and not player_id:
            continue

        stats: Dict[str, float] = {}
        for col, key in stat_cols.items():
            stats[key] = stats.get(key, 0.0) + float(rec[col])

        team = _clean_str(rec.get("team"))
        rows.append(
            ProjectionRow(
                player_id=player_id,
                name=name or f"Player {player_id}",
                position=normalize_position(_clean_str(rec.get("pos")) or ""),
                projection=float(rec["proj"]),
                team=team.upper() if team else None,
                opponent=_clean_str(rec.get("opp")),
                stats=stats,
            )
        )

    logger.info("Loaded %d projection rows (%d stat columns)", len(rows), len(stat_cols))
    return rows


def _name_key(name: str, team: Optional[str], position: str) -> str:
    return f"{_norm_name(name)}|{(team or '').upper()}|{normalize_position(position)}"


class ProjectionIndex:
    """Lookup of projection rows by player id, then by name|team|position."""

    def __init__(self, rows: Iterable[ProjectionRow] = ()):
        self._by_id: Dict[str, ProjectionRow] = {}
        self._by_key: Dict[str, ProjectionRow] = {}
        self._by_name_pos: Dict[str, ProjectionRow] = {}
        for row in rows:
            self.add(row)

    def add(self, row: ProjectionRow) -> None:
        if row.player_id:
            self._by_id[row.player_id] = row
        self._by_key[_name_key(row.name, row.team, row.position)] = row
        self._by_name_pos.setdefault(f"{_norm_name(row.name)}|{row.position}", row)

    def __len__(self) -> int:
        return len(self._by_key)

    def lookup(
        self,
        player_id: Optional[str],
        name: str,
        team: Optional[str],
        position: str,
    ) -> Optional[ProjectionRow]:
        if player_id and player_id in self._by_id:
            return self._by_id[player_id]
        row = self._by_key.get(_name_key(name, team, position))
        if row is not None:
            return row
        # Team codes drift between feeds (e.g. WSH/WAS); name + position is
        # still specific enough for a last try.
        return self._by_name_pos.get(f"{_norm_name(name)}|{normalize_position(position)}")
