"""
Current batting state from a match scorecard.
"""
from __future__ import annotations

from typing import Any, Optional

from shared.models.domain import BatterLine, BattingData, BowlerLine, PlayerRef, coerce_number

from ingest.enrichment.players import SquadSplit, scorecard_innings

MAX_CURRENT_BATSMEN = 2
MAX_DISMISSED_BATSMEN = 5
MAX_CURRENT_BOWLERS = 2


def _number(value: Any) -> int | float:
    number = coerce_number(value)
    return number if number is not None else 0


def _has_batter_at_crease(inning: dict[str, Any]) -> bool:
    for entry in inning.get("batting") or []:
        if isinstance(entry, dict) and entry.get("batsman") and not entry.get("dismissal"):
            return True
    return False


def pick_current_inning(innings: list[dict[str, Any]]) -> Optional[int]:
    """Index of the first inning with a batter not yet out, else the last inning."""
    if not innings:
        return None
    for index, inning in enumerate(innings):
        if _has_batter_at_crease(inning):
            return index
    return len(innings) - 1


def _score_fallback(info: dict[str, Any], index: int, field: str) -> Any:
    score = info.get("score")
    if isinstance(score, list) and index < len(score) and isinstance(score[index], dict):
        return score[index].get(field)
    return None


def current_batting_state(
    scorecard_payload: Optional[dict[str, Any]],
    squads: SquadSplit,
    info: dict[str, Any],
) -> Optional[BattingData]:
    """
    Summarize the inning in progress.

    Returns None when there is no scorecard to read from.
    """
    innings = scorecard_innings(scorecard_payload)
    index = pick_current_inning(innings)
    if index is None:
        return None
    inning = innings[index]

    teams = [t for t in info.get("teams") or [] if isinstance(t, str)]
    batting_team = str(inning.get("team") or (teams[index] if index < len(teams) else ""))
    bowling_team = next(
        (t for t in teams if t != batting_team),
        teams[1] if len(teams) > 1 else "",
    )

    at_crease: list[BatterLine] = []
    dismissed: list[BatterLine] = []
    batted: set[str] = set()
    for entry in inning.get("batting") or []:
        if not isinstance(entry, dict):
            continue
        batsman = entry.get("batsman")
        name = batsman.get("name") if isinstance(batsman, dict) else None
        if not isinstance(name, str) or not name:
            continue
        batted.add(name.lower())
        line = BatterLine(
            name=name,
            runs=_number(entry.get("r")),
            balls=_number(entry.get("b")),
            dismissal=entry.get("dismissal") or None,
        )
        (dismissed if line.dismissal else at_crease).append(line)

    next_batsman: Optional[PlayerRef] = None
    inning_label = inning.get("inning")
    label = inning_label if isinstance(inning_label, str) and inning_label else batting_team
    for player in squads.squad_for(label, index):
        if player.name.lower() not in batted:
            next_batsman = PlayerRef(name=player.name)
            break

    bowlers: list[BowlerLine] = []
    for entry in (inning.get("bowling") or [])[:MAX_CURRENT_BOWLERS]:
        if not isinstance(entry, dict):
            continue
        bowler = entry.get("bowler")
        name = (bowler.get("name") if isinstance(bowler, dict) else None) or entry.get("name")
        if not isinstance(name, str) or not name:
            continue
        bowlers.append(BowlerLine(
            name=name,
            overs=_number(entry.get("o")),
            runs=_number(entry.get("r")),
            wickets=_number(entry.get("w")),
        ))

    return BattingData(
        batting_team=batting_team,
        bowling_team=bowling_team,
        current_batsmen=at_crease[:MAX_CURRENT_BATSMEN],
        next_batsman=next_batsman,
        dismissed_batsmen=list(reversed(dismissed))[:MAX_DISMISSED_BATSMEN],
        current_bowlers=bowlers,
        total_runs=_number(inning.get("totalRuns") or _score_fallback(info, index, "r")),
        total_wickets=_number(inning.get("totalWickets") or _score_fallback(info, index, "w")),
        total_overs=_number(inning.get("totalOvers") or _score_fallback(info, index, "o")),
    )
