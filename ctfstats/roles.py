"""Linking, parsing and merging of manual role annotations."""

import logging
import re
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Optional

from ctfstats import ROTATION, Match, PlayerRow, RegistryEntry, RoleAnnotation

log = logging.getLogger(__name__)

NO_NOTES_SENTINEL = '(no role notes)'
KNOWN_MODIFIERS = frozenset({'hra', 'era', 'nmera', 'hmed', 'hm'})

INVALID_SCORE = 'invalid_score'
NO_MATCH = 'no_match'
AMBIGUOUS = 'ambiguous'

_NOTE_RE = re.compile(r'\(([^)]+)\)')
_MAP_STRIP_RE = re.compile(r'[\s_]+')


@dataclass
class UnlinkedRole:
    """An annotation the linker could not attach to a match."""

    entry: RoleAnnotation
    reason: str           # invalid_score, no_match, ambiguous


@dataclass
class LinkReport:
    """Outcome of link_unlinked_roles."""

    linked_count: int = 0
    orphaned: list[RoleAnnotation] = field(default_factory=list)
    unresolved: list[UnlinkedRole] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedRole:
    """Final role of one player within one annotation."""

    player: str
    role_raw: str
    role_parsed: str
    notes: Optional[str]


@dataclass(frozen=True)
class RoleAssignment:
    """A parsed role tied to the annotation's match."""

    match_id: Optional[str]
    player: str
    role_raw: str
    role_parsed: str
    notes: Optional[str]


def normalize_map_name(name: Optional[str]) -> str:
    """Lower-case a map name and drop whitespace and underscores."""
    return _MAP_STRIP_RE.sub('', name or '').lower()


def build_date_index(matches: Iterable[Match]) -> dict[str, list[Match]]:
    """Index matches by local date."""
    index: dict[str, list[Match]] = defaultdict(list)
    for m in matches:
        if m.date_local:
            index[m.date_local].append(m)
    return dict(index)


def build_date_map_index(matches: Iterable[Match]) -> dict[tuple[str, str], list[Match]]:
    """Index matches by (local date, normalized map name)."""
    index: dict[tuple[str, str], list[Match]] = defaultdict(list)
    for m in matches:
        if m.date_local:
            index[(m.date_local, normalize_map_name(m.map))].append(m)
    return dict(index)


def _parse_score(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def link_unlinked_roles(annotations: list[RoleAnnotation], matches: list[Match]) -> LinkReport:
    """Attach a match_id to annotations entered with only date, map and score.

    The annotations are updated in place, so callers must pass their own
    copy. Entries that already carry a match_id are left alone.

    An annotation is orphaned when no match was played on its date, or none
    on its map that day. Otherwise the candidates are filtered by score with
    our side on either red or blue; exactly one candidate links, zero is
    ``no_match`` and several are ``ambiguous``.

    Args:
        annotations: Role annotations (caller-owned copy).
        matches: Parsed matches.

    Returns:
        LinkReport with counts, orphaned and unresolved annotations.
    """
    date_index = build_date_index(matches)
    date_map_index = build_date_map_index(matches)
    report = LinkReport()

    for entry in annotations:
        if entry.match_id:
            continue

        score_wb = _parse_score(entry.score_wb)
        score_opp = _parse_score(entry.score_opp)
        if score_wb is None or score_opp is None:
            report.unresolved.append(UnlinkedRole(entry, INVALID_SCORE))
            continue

        if entry.date_local not in date_index:
            report.orphaned.append(entry)
            continue

        candidates = date_map_index.get((entry.date_local, normalize_map_name(entry.map)), [])
        if not candidates:
            report.orphaned.append(entry)
            continue

        score_matches = [
            m for m in candidates
            if (m.score_red == score_wb and m.score_blue == score_opp)
            or (m.score_blue == score_wb and m.score_red == score_opp)
        ]

        if len(score_matches) == 1:
            match = score_matches[0]
            entry.match_id = match.match_id
            if not entry.wb_side:
                is_red = match.score_red == score_wb and match.score_blue == score_opp
                entry.wb_side = 'red' if is_red else 'blue'
            report.linked_count += 1
        elif not score_matches:
            report.unresolved.append(UnlinkedRole(entry, NO_MATCH))
        else:
            report.unresolved.append(UnlinkedRole(entry, AMBIGUOUS))

    log.info(
        "Rollen verknuepft: %d, verwaist: %d, offen: %d",
        report.linked_count, len(report.orphaned), len(report.unresolved),
    )
    return report


def _split_modifier(entry: str, role_normalize: dict[str, str]) -> tuple[str, Optional[str]]:
    """Split a leading modifier word ("hRA jcb") from the player name."""
    parts = entry.split()
    if len(parts) >= 2:
        candidate = parts[0].lower()
        if candidate in KNOWN_MODIFIERS or candidate in role_normalize:
            return ' '.join(parts[1:]), role_normalize.get(candidate, candidate)
    return entry, None


def parse_roles_raw(roles_raw: Optional[str], role_normalize: dict[str, str] | None = None) -> list[ParsedRole]:
    """Parse a role string such as ``def: foo; off: bar, hRA baz (late sub)``.

    A player given several distinct base roles becomes ROTATION; otherwise
    the modifier-qualified variant (``off+hra``) wins over the plain role.

    Args:
        roles_raw: Free-text role notes.
        role_normalize: Shorthand -> canonical role names.

    Returns:
        One ParsedRole per player, in order of first appearance.
    """
    role_normalize = role_normalize or {}
    if not roles_raw or NO_NOTES_SENTINEL in roles_raw:
        return []

    player_roles: dict[str, list[tuple[str, Optional[str]]]] = {}

    for segment in (s.strip() for s in roles_raw.split(';')):
        role_token, sep, players_str = segment.partition(':')
        if not sep:
            continue
        role_token = role_token.strip().lower()
        role_token = role_normalize.get(role_token, role_token)

        for entry in (e.strip() for e in players_str.split(',')):
            if not entry:
                continue
            notes = None
            note_match = _NOTE_RE.search(entry)
            if note_match:
                notes = note_match.group(1).strip()
                entry = _NOTE_RE.sub('', entry, count=1).strip()

            player, modifier = _split_modifier(entry, role_normalize)
            if not player:
                continue
            full_role = f'{role_token}+{modifier}' if modifier else role_token
            player_roles.setdefault(player, []).append((full_role, notes))

    results: list[ParsedRole] = []
    for player, roles in player_roles.items():
        base_roles = {role.split('+')[0] for role, _ in roles}
        if len(base_roles) > 1:
            role_parsed = ROTATION
        else:
            qualified = [role for role, _ in roles if '+' in role]
            role_parsed = qualified[0] if qualified else roles[0][0]
        notes = '; '.join(n for _, n in roles if n)
        results.append(ParsedRole(
            player=player,
            role_raw=', '.join(role for role, _ in roles),
            role_parsed=role_parsed,
            notes=notes or None,
        ))
    return results


def parse_roles(annotations: Iterable[RoleAnnotation], role_normalize: dict[str, str] | None = None) -> list[RoleAssignment]:
    """Parse every annotation into role assignments."""
    assignments: list[RoleAssignment] = []
    for entry in annotations:
        for parsed in parse_roles_raw(entry.roles_raw, role_normalize):
            assignments.append(RoleAssignment(
                match_id=entry.match_id,
                player=parsed.player,
                role_raw=parsed.role_raw,
                role_parsed=parsed.role_parsed,
                notes=parsed.notes,
            ))
    return assignments


def build_name_index(
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
) -> dict[str, str]:
    """Build a case-folded lookup canonical/alias (and normalized forms) -> canonical."""
    registry = list(registry)
    index: dict[str, str] = {}
    for entry in registry:
        for name in (entry.canonical, *entry.aliases):
            index[name.casefold()] = entry.canonical
    if normalize_nick is not None:
        for entry in registry:
            for name in (entry.canonical, *entry.aliases):
                normalized = normalize_nick(name).casefold()
                if normalized:
                    index.setdefault(normalized, entry.canonical)
    return index


def resolve_role_player(
    name: str,
    name_index: dict[str, str],
    normalize_nick: Callable[[str], str] | None = None,
) -> str:
    """Resolve the player text of a role note; unknown text is taken as canonical."""
    canonical = name_index.get(name.casefold())
    if canonical is None and normalize_nick is not None:
        canonical = name_index.get(normalize_nick(name).casefold())
    return canonical or name


@dataclass
class MergeResult:
    """Output of merge_roles."""

    player_rows: list[PlayerRow]
    merged_count: int = 0
    duplicate_count: int = 0


def merge_roles(
    player_rows: list[PlayerRow],
    roles: Iterable[RoleAssignment],
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
) -> MergeResult:
    """Merge role assignments into player rows keyed by (match_id, player).

    Later assignments for the same key overwrite earlier ones; the number
    of overwritten keys is reported as ``duplicate_count``.

    Returns:
        MergeResult with a new list of player rows.
    """
    name_index = build_name_index(registry, normalize_nick)

    role_map: dict[tuple[str, str], RoleAssignment] = {}
    duplicates = 0
    for role in roles:
        if not role.match_id:
            continue
        canonical = resolve_role_player(role.player, name_index, normalize_nick)
        key = (role.match_id, canonical.casefold())
        if key in role_map:
            duplicates += 1
        role_map[key] = role

    merged_rows: list[PlayerRow] = []
    merged = 0
    for row in player_rows:
        role = role_map.get((row.match_id, row.canonical.casefold()))
        if role is None:
            merged_rows.append(row)
            continue
        merged += 1
        merged_rows.append(replace(
            row,
            role_raw=role.role_raw,
            role_parsed=role.role_parsed,
            role_notes=role.notes,
        ))

    if duplicates:
        log.warning("%d doppelte Rollen-Eintraege ueberschrieben", duplicates)
    return MergeResult(player_rows=merged_rows, merged_count=merged, duplicate_count=duplicates)
