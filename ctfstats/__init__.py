"""Core module for ctf-stats: records shared by all pipeline stages."""

from dataclasses import dataclass, field
from typing import Optional

UNAFFILIATED = 'UNAFFILIATED'
AMBIGUOUS_MEMBER = 'AMBIGUOUS_MEMBER'
MIX = 'MIX'

FULL_TEAM = 'FULL_TEAM'
STACK_3PLUS = 'STACK_3PLUS'

ROTATION = 'ROTATION'

WEAPONS = ('mg', 'sg', 'gl', 'rl', 'rg', 'lg', 'pg')


@dataclass(frozen=True)
class TeamConfig:
    """Pipeline configuration (team_config.json)."""

    focus_team: str
    scope_date: str
    clan_tag_patterns: tuple[str, ...] = ()
    role_normalize: dict[str, str] = field(default_factory=dict)
    utc_offset_hours: int = 1
    era_before_key: str = 'team_2024'
    era_after_key: str = 'team_2026'


@dataclass(frozen=True)
class RegistryEntry:
    """Canonical player identity from player_registry.json."""

    canonical: str
    aliases: tuple[str, ...] = ()
    identity_key: Optional[str] = None
    team_before: Optional[str] = None   # affiliation before scope_date
    team_after: Optional[str] = None    # affiliation on/after scope_date


@dataclass
class RoleAnnotation:
    """Manually authored role notes for one match."""

    date_local: Optional[str]
    map: Optional[str]
    score_wb: object = None
    score_opp: object = None
    opponent: Optional[str] = None
    roles_raw: Optional[str] = None
    match_id: Optional[str] = None
    wb_side: Optional[str] = None


@dataclass(frozen=True)
class Match:
    """One parsed match. Later stages emit updated copies."""

    match_id: str
    datetime_utc: Optional[str]
    datetime_local: Optional[str]
    date_local: Optional[str]
    map: Optional[str]
    duration_sec: int
    duration_min: float
    score_red: int
    score_blue: int
    player_count_red: int = 0
    player_count_blue: int = 0
    url: str = ''
    team_red: Optional[str] = None
    team_blue: Optional[str] = None
    class_red: Optional[str] = None
    class_blue: Optional[str] = None
    qualifies_loose: bool = False
    qualifies_strict: bool = False
    qualifies_h2h: bool = False
    qualifies_standings: bool = False

    @property
    def winner_side(self) -> str:
        if self.score_red > self.score_blue:
            return 'red'
        if self.score_blue > self.score_red:
            return 'blue'
        return 'draw'

    @property
    def is_4v4(self) -> bool:
        return self.player_count_red == 4 and self.player_count_blue == 4


@dataclass(frozen=True)
class PlayerRow:
    """One player's line in one match."""

    match_id: str
    side: str
    raw_nick: str
    canonical: str
    identity_key: Optional[str]
    resolved: bool
    frags: int = 0
    deaths: int = 0
    caps: int = 0
    assists: int = 0
    defends: int = 0
    dmg_dealt: int = 0
    dmg_taken: int = 0
    score: int = 0
    mg: int = 0
    sg: int = 0
    gl: int = 0
    rl: int = 0
    rg: int = 0
    lg: int = 0
    pg: int = 0
    accuracy_sa: Optional[float] = None
    old_rating: Optional[float] = None
    new_rating: Optional[float] = None
    rating_diff: Optional[float] = None
    # TeamResolver
    team_membership: Optional[str] = None
    date_invalid: bool = False
    # StatsEngine
    dpm: float = 0.0
    net_damage: int = 0
    kd_ratio: float = 0.0
    frag_efficiency: float = 0.0
    cap_contribution: int = 0
    mg_share: float = 0.0
    sg_share: float = 0.0
    gl_share: float = 0.0
    rl_share: float = 0.0
    rg_share: float = 0.0
    lg_share: float = 0.0
    pg_share: float = 0.0
    # RoleParser
    role_raw: Optional[str] = None
    role_parsed: Optional[str] = None
    role_notes: Optional[str] = None


@dataclass
class TeamMatchRow:
    """Aggregate of one known team's side in one match."""

    match_id: str
    team_name: str
    side: str
    map: Optional[str]
    date_local: Optional[str]
    opponent_team: Optional[str]
    result: str           # W, L, D
    score_for: int
    score_against: int
    cap_diff: int
    total_damage: int
    total_frags: int
    total_deaths: int
    total_caps: int
    total_defends: int
    avg_dpm: float
    avg_net_damage: float
    avg_kd: float
    damage_hhi: float
    player_names: list[str]
    lineup_key: str
    duration_min: float
    qualifies_loose: bool = False
    qualifies_strict: bool = False
    qualifies_h2h: bool = False
    qualifies_standings: bool = False


@dataclass
class PairStat:
    """Joint record of two focus-team players."""

    pair_key: str
    players: list[str]
    games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    total_net_damage: int = 0
    maps_played: list[str] = field(default_factory=list)

    @property
    def win_pct(self) -> float:
        return self.wins / self.games if self.games else 0.0

    @property
    def avg_net_damage(self) -> float:
        return self.total_net_damage / self.games if self.games else 0.0


@dataclass
class LineupStat:
    """Record of one exact focus-team roster."""

    lineup_key: str
    player_names: list[str]
    games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    total_cap_diff: int = 0
    total_net_damage: float = 0.0
    total_hhi: float = 0.0
    maps_played: dict[str, int] = field(default_factory=dict)
    strict_games: int = 0
    strict_wins: int = 0
    strict_losses: int = 0

    @property
    def win_pct(self) -> float:
        return self.wins / self.games if self.games else 0.0

    @property
    def avg_cap_diff(self) -> float:
        return self.total_cap_diff / self.games if self.games else 0.0

    @property
    def avg_net_damage(self) -> float:
        return self.total_net_damage / self.games if self.games else 0.0

    @property
    def avg_damage_hhi(self) -> float:
        return self.total_hhi / self.games if self.games else 0.0

    @property
    def strict_win_pct(self) -> float:
        return self.strict_wins / self.strict_games if self.strict_games else 0.0
