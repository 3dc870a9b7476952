"""Team membership, side classification and dataset qualification flags."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace
from typing import Optional

from ctfstats import (
    AMBIGUOUS_MEMBER,
    FULL_TEAM,
    MIX,
    STACK_3PLUS,
    UNAFFILIATED,
    Match,
    PlayerRow,
    RegistryEntry,
)

log = logging.getLogger(__name__)

CLASS_RANK: dict[str, int] = {
    FULL_TEAM: 3,
    STACK_3PLUS: 2,
    MIX: 1,
}


def class_rank(classification: Optional[str]) -> int:
    """Confidence rank of a side classification (unknown -> 0)."""
    return CLASS_RANK.get(classification, 0)


def _build_canonical_index(registry: Iterable[RegistryEntry]) -> dict[str, RegistryEntry]:
    """Build a case-insensitive lookup canonical name -> registry entry."""
    return {entry.canonical.lower(): entry for entry in registry}


def pick_era_team(entry: RegistryEntry, date_local: str, scope_date: str) -> str:
    """Select the affiliation for a match date, falling back across eras."""
    if date_local >= scope_date:
        preferred, fallback = entry.team_after, entry.team_before
    else:
        preferred, fallback = entry.team_before, entry.team_after
    return preferred or fallback or UNAFFILIATED


def resolve_teams(
    player_rows: list[PlayerRow],
    matches: list[Match],
    registry: Iterable[RegistryEntry],
    scope_date: str,
) -> list[PlayerRow]:
    """Assign team_membership to every player row.

    Rows of players missing from the registry are UNAFFILIATED. Rows whose
    match has no local date are UNAFFILIATED too and get ``date_invalid``,
    so an unknown date never counts towards either era's roster.

    Returns:
        New list of player rows.
    """
    canonical_index = _build_canonical_index(registry)
    match_dates = {m.match_id: m.date_local for m in matches}

    resolved: list[PlayerRow] = []
    invalid = 0
    for row in player_rows:
        entry = canonical_index.get(row.canonical.lower())
        if entry is None:
            resolved.append(replace(row, team_membership=UNAFFILIATED))
            continue

        date_local = match_dates.get(row.match_id)
        if not date_local:
            invalid += 1
            resolved.append(replace(row, team_membership=UNAFFILIATED, date_invalid=True))
            continue

        team = pick_era_team(entry, date_local, scope_date)
        resolved.append(replace(row, team_membership=team))

    if invalid:
        log.warning("%d Spielerzeilen ohne gueltiges Datum als UNAFFILIATED markiert", invalid)
    return resolved


def classify_side(side_rows: list[PlayerRow]) -> tuple[str, str]:
    """Classify one side of a match.

    Returns:
        (team name, classification). The dominant team is the one with the
        most members; ties go to the team encountered first.
    """
    counts: dict[str, int] = {}
    for row in side_rows:
        team = row.team_membership
        if not team or team in (UNAFFILIATED, AMBIGUOUS_MEMBER):
            continue
        counts[team] = counts.get(team, 0) + 1

    if not counts:
        return MIX, MIX

    best_team, best_count = None, 0
    for team, count in counts.items():
        if count > best_count:
            best_team, best_count = team, count

    if best_count == len(side_rows):
        return best_team, FULL_TEAM
    if best_count >= 3:
        return best_team, STACK_3PLUS
    return MIX, MIX


def group_by_side(player_rows: Iterable[PlayerRow]) -> dict[tuple[str, str], list[PlayerRow]]:
    """Group player rows by (match_id, side)."""
    groups: dict[tuple[str, str], list[PlayerRow]] = defaultdict(list)
    for row in player_rows:
        groups[(row.match_id, row.side)].append(row)
    return dict(groups)


def classify_sides(matches: list[Match], player_rows: list[PlayerRow]) -> list[Match]:
    """Set team_red/team_blue and class_red/class_blue on every match.

    Returns:
        New list of matches.
    """
    groups = group_by_side(player_rows)
    classified: list[Match] = []
    for match in matches:
        team_red, class_red = classify_side(groups.get((match.match_id, 'red'), []))
        team_blue, class_blue = classify_side(groups.get((match.match_id, 'blue'), []))
        classified.append(replace(
            match,
            team_red=team_red, team_blue=team_blue,
            class_red=class_red, class_blue=class_blue,
        ))
    return classified


def qualification_flags(class_red: Optional[str], class_blue: Optional[str]) -> dict[str, bool]:
    """Compute the four qualification flags from two side classifications.

    loose:     at least one side FULL_TEAM
    strict:    one side FULL_TEAM, the other at least STACK_3PLUS
    h2h:       both sides at least STACK_3PLUS
    standings: at least one side STACK_3PLUS or better
    """
    rr = class_rank(class_red)
    br = class_rank(class_blue)
    return {
        'qualifies_loose': rr >= 3 or br >= 3,
        'qualifies_strict': (rr >= 3 and br >= 2) or (br >= 3 and rr >= 2),
        'qualifies_h2h': rr >= 2 and br >= 2,
        'qualifies_standings': rr >= 2 or br >= 2,
    }


def dataset_flags(matches: list[Match]) -> list[Match]:
    """Add qualification flags; only 4v4 matches can qualify.

    Returns:
        New list of matches.
    """
    flagged: list[Match] = []
    for match in matches:
        if match.is_4v4:
            flags = qualification_flags(match.class_red, match.class_blue)
        else:
            flags = qualification_flags(None, None)
        flagged.append(replace(match, **flags))
    return flagged
