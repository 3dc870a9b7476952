"""Raw qllr match export -> Match and PlayerRow records."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ctfstats import Match, PlayerRow, RegistryEntry

log = logging.getLogger(__name__)

SCOREBOARD_URL = 'https://qllr.xyz/scoreboard/{}'


@dataclass
class ParseResult:
    """Output of parse_matches, including parse diagnostics."""

    matches: list[Match]
    player_rows: list[PlayerRow]
    unresolved_players: set[str] = field(default_factory=set)
    duration_parse_errors: int = 0
    score_parse_errors: int = 0


def parse_duration(value) -> Optional[int]:
    """Parse an ``MM:SS`` duration into seconds.

    Returns:
        Seconds, or None if the value is missing or malformed.
    """
    if not value:
        return None
    parts = str(value).split(':')
    if len(parts) != 2:
        return None
    try:
        minutes, seconds = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if minutes < 0 or not 0 <= seconds < 60:
        return None
    return minutes * 60 + seconds


def parse_scores(value) -> Optional[tuple[int, int]]:
    """Parse a ``"N : M"`` score string into (red, blue).

    Returns:
        Score pair, or None if the value is missing or malformed.
    """
    if not value:
        return None
    parts = str(value).split(':')
    if len(parts) != 2:
        return None
    try:
        return int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        return None


def parse_accuracy(accuracy) -> Optional[float]:
    """Parse ``{"SA": "21%"}`` into 0.21."""
    if not isinstance(accuracy, dict) or not accuracy.get('SA'):
        return None
    try:
        return float(str(accuracy['SA']).replace('%', '').strip()) / 100
    except ValueError:
        return None


def to_local(utc_value, offset_hours: int = 1) -> tuple[Optional[str], Optional[str]]:
    """Convert a UTC timestamp such as ``2026-02-18 21:21 UTC`` to local time.

    Args:
        utc_value: Timestamp string from the export.
        offset_hours: Fixed offset of the local time zone.

    Returns:
        (datetime_local as ``YYYY-MM-DD HH:MM``, date_local as ``YYYY-MM-DD``),
        both None when the timestamp cannot be parsed.
    """
    if not utc_value or not isinstance(utc_value, str):
        return None, None
    cleaned = utc_value.strip()
    if cleaned.upper().endswith('UTC'):
        cleaned = cleaned[:-3].strip()
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None, None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    local = parsed + timedelta(hours=offset_hours)
    return local.strftime('%Y-%m-%d %H:%M'), local.strftime('%Y-%m-%d')


def build_alias_index(
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
) -> dict[str, RegistryEntry]:
    """Build a case-insensitive lookup: canonical, alias or identity key -> entry.

    Clan-tag-normalized forms of canonical names and aliases are added too,
    without overriding an exact spelling already in the index.
    """
    registry = list(registry)
    index: dict[str, RegistryEntry] = {}
    for entry in registry:
        names = [entry.canonical, *entry.aliases]
        for name in names:
            index[name.lower()] = entry
        if entry.identity_key:
            index[str(entry.identity_key).lower()] = entry

    if normalize_nick is not None:
        for entry in registry:
            for name in (entry.canonical, *entry.aliases):
                normalized = normalize_nick(name).lower()
                if normalized:
                    index.setdefault(normalized, entry)
    return index


def resolve_player(
    nick: str,
    alias_index: dict[str, RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
) -> tuple[str, Optional[str], bool]:
    """Resolve a raw nick to (canonical, identity_key, resolved).

    Unresolved nicks are kept as their own canonical value.
    """
    entry = alias_index.get(nick.lower())
    if entry is None and normalize_nick is not None:
        normalized = normalize_nick(nick).lower()
        if normalized:
            entry = alias_index.get(normalized)
    if entry is None:
        return nick, None, False
    key = str(entry.identity_key) if entry.identity_key else None
    return entry.canonical, key, True


def _int(value) -> int:
    """Coerce an optional numeric stat to int (missing -> 0)."""
    if value is None or value == '':
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0


def _build_player_row(raw_player: dict, match_id: str, resolution) -> PlayerRow:
    canonical, identity_key, resolved = resolution
    damage = raw_player.get('Damage') or {}
    return PlayerRow(
        match_id=match_id,
        side=raw_player.get('team'),
        raw_nick=raw_player.get('Nick') or '',
        canonical=canonical,
        identity_key=identity_key,
        resolved=resolved,
        frags=_int(raw_player.get('frags')),
        deaths=_int(raw_player.get('deaths')),
        caps=_int(raw_player.get('captures')),
        assists=_int(raw_player.get('assists')),
        defends=_int(raw_player.get('defends')),
        dmg_dealt=_int(raw_player.get('DamageDealt')),
        dmg_taken=_int(raw_player.get('DamageTaken')),
        score=_int(raw_player.get('score')),
        mg=_int(damage.get('MG')),
        sg=_int(damage.get('SG')),
        gl=_int(damage.get('GL')),
        rl=_int(damage.get('RL')),
        rg=_int(damage.get('RG')),
        lg=_int(damage.get('LG')),
        pg=_int(damage.get('PG')),
        accuracy_sa=parse_accuracy(raw_player.get('Accuracy')),
        old_rating=raw_player.get('OldRating'),
        new_rating=raw_player.get('NewRating'),
        rating_diff=raw_player.get('Diff'),
    )


def parse_matches(
    raw_matches: list[dict],
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
    utc_offset_hours: int = 1,
) -> ParseResult:
    """Parse the raw export into matches and player rows.

    Malformed durations and scores fall back to 0 and are counted; a bad
    timestamp leaves the match without a local date.

    Args:
        raw_matches: Match objects from the qllr export.
        registry: Player registry entries.
        normalize_nick: Clan-tag normalizer used as a resolution fallback.
        utc_offset_hours: Fixed offset for local date/time.

    Returns:
        ParseResult with one Match per entry and one PlayerRow per player.
    """
    registry = list(registry)
    alias_index = build_alias_index(registry, normalize_nick)
    result = ParseResult(matches=[], player_rows=[])

    for raw in raw_matches:
        match_id = raw.get('match_id')

        duration_sec = parse_duration(raw.get('duration'))
        if duration_sec is None:
            result.duration_parse_errors += 1
            duration_sec = 0

        scores = parse_scores(raw.get('scores'))
        if scores is None:
            result.score_parse_errors += 1
            scores = (0, 0)

        datetime_local, date_local = to_local(raw.get('played_at'), utc_offset_hours)
        if date_local is None:
            log.warning("Match %s: ungueltiger Zeitstempel %r", match_id, raw.get('played_at'))

        players = raw.get('players') or []
        for raw_player in players:
            nick = raw_player.get('Nick') or ''
            resolution = resolve_player(nick, alias_index, normalize_nick)
            if not resolution[2]:
                result.unresolved_players.add(nick)
            result.player_rows.append(_build_player_row(raw_player, match_id, resolution))

        result.matches.append(Match(
            match_id=match_id,
            datetime_utc=raw.get('played_at'),
            datetime_local=datetime_local,
            date_local=date_local,
            map=raw.get('arena'),
            duration_sec=duration_sec,
            duration_min=duration_sec / 60,
            score_red=scores[0],
            score_blue=scores[1],
            player_count_red=sum(1 for p in players if p.get('team') == 'red'),
            player_count_blue=sum(1 for p in players if p.get('team') == 'blue'),
            url=SCOREBOARD_URL.format(match_id),
        ))

    if result.duration_parse_errors:
        log.warning("%d Matches mit ungueltiger Dauer", result.duration_parse_errors)
    if result.score_parse_errors:
        log.warning("%d Matches mit ungueltigem Spielstand", result.score_parse_errors)
    log.info(
        "%d Matches, %d Spielerzeilen geparst (%d unbekannte Nicks)",
        len(result.matches), len(result.player_rows), len(result.unresolved_players),
    )
    return result
