"""
Player extraction and merging for match enrichment.

Players arrive from four places, none complete on its own:

  squad       — identity, role, styles, image
  scorecard   — per-inning batting and bowling figures
  live score  — batsmen/bowlers embedded in the match-info score array
  match info  — a loose list of names or partial dicts

merge_players() folds them into one record per player, keyed by the
lower-cased name. The first source to supply a field owns it; later
sources only fill gaps.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from shared.models.domain import PlayerRecord, SquadPlayer
from shared.models.enums import PlayerRole
from shared.utils.logging import get_logger
from shared.utils.shapes import PLAYER_IMAGE_SHAPES, PLAYER_NAME_SHAPES, extract_text

logger = get_logger(__name__)

# Upstream does not flag the playing XI; the first eleven listed are used.
PLAYING_XI_SIZE = 11
UNKNOWN_PLAYER = "Unknown Player"
INNING_SUFFIX = re.compile(r"\s+inning\s*\d*$", re.IGNORECASE)

RawPlayer = dict[str, Any]


@dataclass
class SquadSplit:
    team1_name: str = ""
    team2_name: str = ""
    team1_squad: list[SquadPlayer] = field(default_factory=list)
    team2_squad: list[SquadPlayer] = field(default_factory=list)

    @property
    def team1_playing_xi(self) -> list[SquadPlayer]:
        return self.team1_squad[:PLAYING_XI_SIZE]

    @property
    def team2_playing_xi(self) -> list[SquadPlayer]:
        return self.team2_squad[:PLAYING_XI_SIZE]

    @property
    def players(self) -> list[SquadPlayer]:
        return [*self.team1_squad, *self.team2_squad]

    def squad_for(self, team_name: str, inning_index: int) -> list[SquadPlayer]:
        """
        Squad of the team batting in an inning labelled e.g. "India A Inning 2".

        An exact name match wins; otherwise the longest team name contained in
        the label. Falls back to inning parity when neither name matches.
        """
        wanted = INNING_SUFFIX.sub("", team_name.strip()).lower()
        sides = [
            (name.strip().lower(), squad)
            for name, squad in ((self.team1_name, self.team1_squad), (self.team2_name, self.team2_squad))
            if name.strip()
        ]
        if wanted:
            for name, squad in sides:
                if name == wanted:
                    return squad
            contained = [(name, squad) for name, squad in sides if name in wanted]
            if contained:
                return max(contained, key=lambda side: len(side[0]))[1]
        return self.team1_squad if inning_index % 2 == 0 else self.team2_squad


def _squad_player(raw: Any) -> Optional[SquadPlayer]:
    if not isinstance(raw, dict):
        return None
    name = extract_text(raw, PLAYER_NAME_SHAPES)
    if not name:
        return None
    try:
        return SquadPlayer(
            name=name,
            id=raw.get("id"),
            role=raw.get("role"),
            batting_style=raw.get("battingStyle"),
            bowling_style=raw.get("bowlingStyle"),
            country=raw.get("country"),
            image=extract_text(raw, PLAYER_IMAGE_SHAPES),
        )
    except ValidationError as exc:
        logger.debug("squad_player_skipped", name=name, error=str(exc))
        return None


def split_squad(payload: Optional[dict[str, Any]]) -> SquadSplit:
    """Per-team squads from a match_squad envelope (data = [team1, team2])."""
    if not payload or not isinstance(payload.get("data"), list):
        return SquadSplit()

    teams = payload["data"]
    sides: list[tuple[str, list[SquadPlayer]]] = []
    for team in teams[:2]:
        team = team if isinstance(team, dict) else {}
        members = [p for p in (_squad_player(r) for r in team.get("players") or []) if p]
        sides.append((str(team.get("teamName") or ""), members))
    while len(sides) < 2:
        sides.append(("", []))

    return SquadSplit(
        team1_name=sides[0][0],
        team2_name=sides[1][0],
        team1_squad=sides[0][1],
        team2_squad=sides[1][1],
    )


def players_from_live_score(score: Any) -> list[RawPlayer]:
    """Batsmen and bowlers embedded in the match-info score innings."""
    players: list[RawPlayer] = []
    if not isinstance(score, list):
        return players

    for inning in score:
        if not isinstance(inning, dict):
            continue
        for batsman in inning.get("batsmen") or []:
            if isinstance(batsman, dict) and batsman.get("name"):
                players.append({
                    "name": batsman["name"],
                    "runs": batsman.get("r"),
                    "balls": batsman.get("b"),
                    "fours": batsman.get("4s"),
                    "sixes": batsman.get("6s"),
                    "strike_rate": batsman.get("sr"),
                    "role": PlayerRole.BATSMAN.value,
                    "image": extract_text(batsman, PLAYER_IMAGE_SHAPES),
                })
        for bowler in inning.get("bowlers") or []:
            if isinstance(bowler, dict) and bowler.get("name"):
                players.append({
                    "name": bowler["name"],
                    "overs": bowler.get("o"),
                    "runs": bowler.get("r"),
                    "wickets": bowler.get("w"),
                    "maidens": bowler.get("m"),
                    "economy": bowler.get("econ"),
                    "role": PlayerRole.BOWLER.value,
                    "image": extract_text(bowler, PLAYER_IMAGE_SHAPES),
                })
    return players


def scorecard_innings(payload: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
    if not payload or not isinstance(payload.get("data"), dict):
        return []
    innings = payload["data"].get("scorecard")
    if not isinstance(innings, list):
        return []
    return [inning for inning in innings if isinstance(inning, dict)]


def players_from_scorecard(payload: Optional[dict[str, Any]]) -> list[RawPlayer]:
    """Batting and bowling figures from every scorecard inning."""
    players: list[RawPlayer] = []
    for inning in scorecard_innings(payload):
        for entry in inning.get("batting") or []:
            batsman = entry.get("batsman") if isinstance(entry, dict) else None
            if isinstance(batsman, dict) and batsman.get("name"):
                players.append({
                    "name": batsman["name"],
                    "id": batsman.get("id"),
                    "runs": entry.get("r"),
                    "balls": entry.get("b"),
                    "fours": entry.get("4s"),
                    "sixes": entry.get("6s"),
                    "strike_rate": entry.get("sr"),
                    "role": PlayerRole.BATSMAN.value,
                })
        for entry in inning.get("bowling") or []:
            bowler = entry.get("bowler") if isinstance(entry, dict) else None
            if isinstance(bowler, dict) and bowler.get("name"):
                players.append({
                    "name": bowler["name"],
                    "id": bowler.get("id"),
                    "overs": entry.get("o"),
                    "runs": entry.get("r"),
                    "wickets": entry.get("w"),
                    "maidens": entry.get("m"),
                    "economy": entry.get("eco"),
                    "role": PlayerRole.BOWLER.value,
                })
    return players


def players_from_match_info(raw_players: Iterable[Any]) -> list[RawPlayer]:
    """Loose player list from match info: bare names or partial dicts."""
    players: list[RawPlayer] = []
    for raw in raw_players:
        if isinstance(raw, str):
            name: Optional[str] = raw.strip()
            raw = {}
        elif isinstance(raw, dict):
            name = extract_text(raw, PLAYER_NAME_SHAPES)
        else:
            continue
        if not name or name == UNKNOWN_PLAYER:
            continue
        players.append({
            "name": name,
            "id": raw.get("id"),
            "role": raw.get("role"),
            "image": extract_text(raw, PLAYER_IMAGE_SHAPES),
            "batting_style": raw.get("battingStyle"),
            "bowling_style": raw.get("bowlingStyle"),
            "country": raw.get("country"),
        })
    return players


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def merge_players(*sources: Iterable[RawPlayer | SquadPlayer]) -> list[PlayerRecord]:
    """
    Merge player sources in priority order.

    Records are keyed by case-insensitive name. A field keeps the first
    non-empty value seen; later sources never overwrite it. The result is
    ordered by first appearance.
    """
    merged: dict[str, RawPlayer] = {}
    for source in sources:
        for player in source:
            raw = player.model_dump() if isinstance(player, SquadPlayer) else player
            name = raw.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            key = name.strip().lower()
            existing = merged.setdefault(key, {"name": name.strip()})
            for field_name, value in raw.items():
                if _is_empty(value):
                    continue
                if _is_empty(existing.get(field_name)):
                    existing[field_name] = value

    records: list[PlayerRecord] = []
    for record in merged.values():
        try:
            records.append(PlayerRecord.model_validate(record))
        except ValidationError as exc:
            logger.debug("player_record_skipped", name=record["name"], error=str(exc))
    return records
