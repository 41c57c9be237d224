"""Domain enumerations for the crickfeed service."""
from __future__ import annotations

from enum import Enum


class Region(str, Enum):
    """Independent in-memory cache regions."""
    CURRENT = "current"
    UPCOMING = "upcoming"
    SERIES = "series"
    MATCH_DETAILS = "match_details"


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class Endpoint(str, Enum):
    """Upstream read endpoints, relative to the base URL."""
    MATCHES = "matches"
    MATCH_INFO = "match_info"
    MATCH_SQUAD = "match_squad"
    MATCH_SCORECARD = "match_scorecard"
    MATCH_SCORECARD_ALT = "matchScorecard"
    SERIES = "series"


class PlayerRole(str, Enum):
    BATSMAN = "Batsman"
    BOWLER = "Bowler"
