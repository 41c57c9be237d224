"""
Pydantic v2 domain models for the crickfeed service.
Field names are snake_case in Python and camelCase on the wire; unknown
upstream fields are preserved so responses stay a superset of the source.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Number = Union[int, float]


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using upstream (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


def coerce_text_id(value: Any) -> Optional[str]:
    """Upstream ids arrive as strings or numbers; anything else is dropped."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def coerce_number(value: Any) -> Optional[Number]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        return int(text) if text.lstrip("-").isdigit() else float(text)
    except ValueError:
        return None


# ── Match ───────────────────────────────────────────────────────────────
class Match(DomainModel):
    """A single fixture as listed by the matches endpoint."""
    id: str
    name: Optional[str] = None
    teams: list[str] = Field(default_factory=list)
    match_started: bool = False
    match_ended: bool = False
    date_time_gmt: Optional[str] = Field(default=None, alias="dateTimeGMT")
    date: Optional[str] = None
    score: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("teams", mode="before")
    @classmethod
    def _team_names(cls, value: Any) -> Any:
        return [t for t in value if isinstance(t, str)] if isinstance(value, list) else []

    @field_validator("score", mode="before")
    @classmethod
    def _score_innings(cls, value: Any) -> Any:
        return [i for i in value if isinstance(i, dict)] if isinstance(value, list) else []

    @field_validator("match_started", "match_ended", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def has_score(self) -> bool:
        return len(self.score) > 0

    @property
    def start_time(self) -> datetime:
        """Kick-off time used for ordering; epoch start when unparseable."""
        for raw in (self.date_time_gmt, self.date):
            if not raw:
                continue
            try:
                parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                continue
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        return datetime.fromtimestamp(0, tz=timezone.utc)


# ── Players ─────────────────────────────────────────────────────────────
class SquadPlayer(DomainModel):
    name: str
    id: Optional[str] = None
    role: Optional[str] = None
    batting_style: Optional[str] = None
    bowling_style: Optional[str] = None
    country: Optional[str] = None
    image: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Optional[str]:
        return coerce_text_id(value)


class PlayerRecord(DomainModel):
    """One player merged from squad, scorecard, live score and match-info sources."""
    name: str
    id: Optional[str] = None
    role: Optional[str] = None
    image: Optional[str] = None
    batting_style: Optional[str] = None
    bowling_style: Optional[str] = None
    country: Optional[str] = None
    runs: Optional[Number] = None
    balls: Optional[Number] = None
    fours: Optional[Number] = None
    sixes: Optional[Number] = None
    strike_rate: Optional[Number] = None
    overs: Optional[Number] = None
    wickets: Optional[Number] = None
    maidens: Optional[Number] = None
    economy: Optional[Number] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Optional[str]:
        return coerce_text_id(value)

    @field_validator(
        "runs", "balls", "fours", "sixes", "strike_rate",
        "overs", "wickets", "maidens", "economy",
        mode="before",
    )
    @classmethod
    def _numeric(cls, value: Any) -> Optional[Number]:
        return coerce_number(value)


# ── Batting state ───────────────────────────────────────────────────────
class BatterLine(DomainModel):
    name: str
    runs: Number = 0
    balls: Number = 0
    dismissal: Optional[str] = None


class BowlerLine(DomainModel):
    name: str
    overs: Number = 0
    runs: Number = 0
    wickets: Number = 0


class PlayerRef(DomainModel):
    name: str


class BattingData(DomainModel):
    """Snapshot of the inning currently in progress (or the last one played)."""
    batting_team: str = ""
    bowling_team: str = ""
    current_batsmen: list[BatterLine] = Field(default_factory=list)
    next_batsman: Optional[PlayerRef] = None
    dismissed_batsmen: list[BatterLine] = Field(default_factory=list)
    current_bowlers: list[BowlerLine] = Field(default_factory=list)
    total_runs: Number = 0
    total_wickets: Number = 0
    total_overs: Number = 0


# ── Match detail ────────────────────────────────────────────────────────
class MatchDetail(DomainModel):
    """
    Match-info payload plus whatever enrichment succeeded.

    A bare record keeps the enrichment fields at their empty defaults.
    """
    id: str
    name: Optional[str] = None
    teams: list[str] = Field(default_factory=list)
    score: list[dict[str, Any]] = Field(default_factory=list)
    team1_squad: list[SquadPlayer] = Field(default_factory=list)
    team2_squad: list[SquadPlayer] = Field(default_factory=list)
    team1_playing_xi: list[SquadPlayer] = Field(
        default_factory=list,
        alias="team1PlayingXI",
        validation_alias=AliasChoices("team1PlayingXI", "team1_playing_xi"),
    )
    team2_playing_xi: list[SquadPlayer] = Field(
        default_factory=list,
        alias="team2PlayingXI",
        validation_alias=AliasChoices("team2PlayingXI", "team2_playing_xi"),
    )
    players: list[PlayerRecord] = Field(default_factory=list)
    batting_data: Optional[BattingData] = None
    stats: dict[str, Any] = Field(default_factory=dict)
    commentary: list[Any] = Field(default_factory=list)
    toss_winner: Optional[str] = None
    toss_choice: Optional[str] = None
    match_winner: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("teams", mode="before")
    @classmethod
    def _team_names(cls, value: Any) -> Any:
        return [t for t in value if isinstance(t, str)] if isinstance(value, list) else []

    @field_validator("commentary", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @field_validator("score", mode="before")
    @classmethod
    def _score_innings(cls, value: Any) -> Any:
        return [i for i in value if isinstance(i, dict)] if isinstance(value, list) else []

    @field_validator("stats", mode="before")
    @classmethod
    def _dict_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def is_enriched(self) -> bool:
        return bool(self.team1_squad or self.team2_squad or self.players or self.batting_data)
