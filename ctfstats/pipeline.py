"""Pipeline orchestrator: raw export -> scoped analytic dataset + diagnostics.

Stages run in dependency order::

    parse -> resolve teams -> classify sides -> dataset flags -> player stats
    -> team-match rows -> link roles -> parse/merge roles -> scope filter
    -> pair/lineup stats -> registry integrity -> fingerprint
"""

import copy
import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from ctfstats import (
    LineupStat,
    Match,
    PairStat,
    PlayerRow,
    RegistryEntry,
    RoleAnnotation,
    TeamConfig,
    TeamMatchRow,
)
from ctfstats.integrity import IntegrityReport, check_registry_integrity
from ctfstats.nicks import build_nick_normalizer
from ctfstats.parser import parse_matches
from ctfstats.roles import UnlinkedRole, link_unlinked_roles, merge_roles, parse_roles
from ctfstats.stats import (
    build_lineup_stats,
    build_pair_stats,
    build_team_match_rows,
    compute_player_stats,
)
from ctfstats.suggestions import DEFAULT_THRESHOLD, AliasSuggestion, suggest_aliases
from ctfstats.teams import classify_sides, dataset_flags, resolve_teams

log = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """Data-quality findings collected during one pipeline run."""

    scope_date: str
    data_hash: str = ''
    unresolved_players: list[str] = field(default_factory=list)
    unresolved_nick_counts: dict[str, int] = field(default_factory=dict)
    alias_suggestions: dict[str, list[AliasSuggestion]] = field(default_factory=dict)
    duration_parse_errors: int = 0
    score_parse_errors: int = 0
    date_invalid_rows: int = 0
    unlinked_roles: list[RoleAnnotation] = field(default_factory=list)
    orphaned_roles: list[RoleAnnotation] = field(default_factory=list)
    roles_still_unlinked: list[UnlinkedRole] = field(default_factory=list)
    roles_linked_by_fallback: int = 0
    total_role_entries: int = 0
    roles_merged: int = 0
    duplicate_roles: int = 0
    registry_integrity: IntegrityReport = field(default_factory=IntegrityReport)


@dataclass
class PipelineResult:
    """Everything the presentation layer consumes."""

    matches: list[Match]
    player_rows: list[PlayerRow]
    team_match_rows: list[TeamMatchRow]
    pair_stats: list[PairStat]
    lineup_stats: list[LineupStat]
    all_matches: list[Match]
    all_player_rows: list[PlayerRow]
    all_team_match_rows: list[TeamMatchRow]
    diagnostics: Diagnostics


def dataset_fingerprint(match_ids: Iterable) -> str:
    """Short deterministic hash over the sorted match IDs.

    32-bit rolling hash (h * 31 + c) rendered as 8 hex digits.
    """
    text = ','.join(sorted(str(mid) for mid in match_ids))
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return f'{h:08x}'


def in_scope(match: Match, scope_date: str) -> bool:
    """Whether a match falls on or after the scope date; undated matches never do."""
    return match.date_local is not None and match.date_local >= scope_date


def process_data(
    raw_matches: list[dict],
    registry: list[RegistryEntry],
    config: TeamConfig,
    annotations: Optional[list[RoleAnnotation]] = None,
    fuzzy_threshold: float = DEFAULT_THRESHOLD,
) -> PipelineResult:
    """Run the full pipeline over one complete export.

    Caller-owned inputs are never modified: annotations are deep-copied
    before linking and registry/config records are read-only.

    Args:
        raw_matches: Match array from the qllr export.
        registry: Player registry entries.
        config: Team configuration.
        annotations: Manual role annotations.
        fuzzy_threshold: Minimum similarity for alias suggestions.

    Returns:
        PipelineResult with scoped and unscoped datasets and diagnostics.

    Raises:
        TypeError: If raw_matches is not a list.
    """
    if not isinstance(raw_matches, list):
        raise TypeError(f"Match-Daten muessen eine Liste sein, nicht {type(raw_matches).__name__}")

    registry = list(registry)
    normalize_nick = build_nick_normalizer(config.clan_tag_patterns)
    diagnostics = Diagnostics(scope_date=config.scope_date)

    parsed = parse_matches(raw_matches, registry, normalize_nick, config.utc_offset_hours)
    diagnostics.unresolved_players = sorted(parsed.unresolved_players)
    diagnostics.duration_parse_errors = parsed.duration_parse_errors
    diagnostics.score_parse_errors = parsed.score_parse_errors

    player_rows = resolve_teams(parsed.player_rows, parsed.matches, registry, config.scope_date)
    diagnostics.date_invalid_rows = sum(1 for p in player_rows if p.date_invalid)

    matches = classify_sides(parsed.matches, player_rows)
    matches = dataset_flags(matches)

    player_rows = compute_player_stats(player_rows, matches)
    team_match_rows = build_team_match_rows(matches, player_rows)

    role_entries = copy.deepcopy(list(annotations or []))
    link_report = link_unlinked_roles(role_entries, matches)
    diagnostics.roles_linked_by_fallback = link_report.linked_count
    diagnostics.orphaned_roles = link_report.orphaned
    diagnostics.roles_still_unlinked = link_report.unresolved

    roles = parse_roles(role_entries, config.role_normalize)
    merged = merge_roles(player_rows, roles, registry, normalize_nick)
    player_rows = merged.player_rows
    diagnostics.total_role_entries = len(roles)
    diagnostics.roles_merged = merged.merged_count
    diagnostics.duplicate_roles = merged.duplicate_count

    match_ids = {m.match_id for m in matches}
    orphaned_ids = {id(entry) for entry in link_report.orphaned}
    diagnostics.unlinked_roles = [
        entry for entry in role_entries
        if entry.match_id not in match_ids and id(entry) not in orphaned_ids
    ]

    scoped_matches = [m for m in matches if in_scope(m, config.scope_date)]
    scoped_ids = {m.match_id for m in scoped_matches}
    scoped_player_rows = [p for p in player_rows if p.match_id in scoped_ids]
    scoped_team_rows = [r for r in team_match_rows if r.match_id in scoped_ids]
    log.info(
        "Scope ab %s: %d von %d Matches", config.scope_date, len(scoped_matches), len(matches),
    )

    pair_stats = build_pair_stats(scoped_team_rows, config.focus_team, scoped_player_rows)
    lineup_stats = build_lineup_stats(scoped_team_rows, config.focus_team)

    diagnostics.unresolved_nick_counts = dict(Counter(
        p.raw_nick for p in scoped_player_rows if not p.resolved
    ).most_common())
    diagnostics.alias_suggestions = suggest_aliases(
        parsed.unresolved_players, registry, normalize_nick, fuzzy_threshold,
    )
    diagnostics.registry_integrity = check_registry_integrity(
        registry, normalize_nick, scoped_player_rows,
    )
    diagnostics.data_hash = dataset_fingerprint(scoped_ids)

    return PipelineResult(
        matches=scoped_matches,
        player_rows=scoped_player_rows,
        team_match_rows=scoped_team_rows,
        pair_stats=pair_stats,
        lineup_stats=lineup_stats,
        all_matches=matches,
        all_player_rows=player_rows,
        all_team_match_rows=team_match_rows,
        diagnostics=diagnostics,
    )
