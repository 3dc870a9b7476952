"""JSON input loading: match export, registry, team config and role notes."""

import json
import logging
from pathlib import Path
from typing import Any

from ctfstats import RegistryEntry, RoleAnnotation, TeamConfig

log = logging.getLogger(__name__)


def load_json(path: str | Path) -> Any:
    """Read a UTF-8 JSON file (a BOM is tolerated).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8-sig') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Datei {path} ist kein gueltiges JSON: {exc}") from exc


def _require_list(data: Any, source: str) -> list:
    if not isinstance(data, list):
        raise ValueError(
            f"{source}: erwartet ein JSON-Array, gefunden {type(data).__name__}"
        )
    return data


def read_matches(path: str | Path) -> list[dict]:
    """Read the raw qllr match export.

    Raises:
        ValueError: If the top-level value is not an array.
    """
    matches = _require_list(load_json(path), str(path))
    log.info("%d Matches gelesen aus %s", len(matches), path)
    return matches


def config_from_json(data: dict) -> TeamConfig:
    """Build a TeamConfig from team_config.json contents."""
    if not isinstance(data, dict):
        raise ValueError("team_config: erwartet ein JSON-Objekt")
    missing = [k for k in ('focus_team', 'scope_date') if not data.get(k)]
    if missing:
        raise ValueError(f"team_config: fehlende Felder: {', '.join(missing)}")

    kwargs = {}
    for key in ('utc_offset_hours', 'era_before_key', 'era_after_key'):
        if key in data:
            kwargs[key] = data[key]
    return TeamConfig(
        focus_team=data['focus_team'],
        scope_date=data['scope_date'],
        clan_tag_patterns=tuple(data.get('clan_tag_patterns') or ()),
        role_normalize={str(k).lower(): v for k, v in (data.get('role_normalize') or {}).items()},
        **kwargs,
    )


def read_team_config(path: str | Path) -> TeamConfig:
    """Read team_config.json."""
    return config_from_json(load_json(path))


def registry_from_json(data: list, config: TeamConfig) -> list[RegistryEntry]:
    """Build registry entries from player_registry.json contents.

    Entries without a canonical name are skipped with a warning.
    """
    entries: list[RegistryEntry] = []
    for idx, raw in enumerate(_require_list(data, 'player_registry')):
        canonical = raw.get('canonical') if isinstance(raw, dict) else None
        if not canonical:
            log.warning("Registry-Eintrag %d ohne canonical uebersprungen", idx)
            continue
        identity_key = raw.get('identity_key', raw.get('steam_id'))
        entries.append(RegistryEntry(
            canonical=canonical,
            aliases=tuple(a for a in raw.get('aliases') or () if a),
            identity_key=str(identity_key) if identity_key else None,
            team_before=raw.get(config.era_before_key) or None,
            team_after=raw.get(config.era_after_key) or None,
        ))
    return entries


def read_registry(path: str | Path, config: TeamConfig) -> list[RegistryEntry]:
    """Read player_registry.json."""
    entries = registry_from_json(load_json(path), config)
    log.info("%d Registry-Eintraege gelesen aus %s", len(entries), path)
    return entries


def annotations_from_json(data: list) -> list[RoleAnnotation]:
    """Build role annotations from manual_roles.json contents."""
    annotations: list[RoleAnnotation] = []
    for raw in _require_list(data, 'manual_roles'):
        annotations.append(RoleAnnotation(
            date_local=raw.get('date_local'),
            map=raw.get('map'),
            score_wb=raw.get('score_wb'),
            score_opp=raw.get('score_opp'),
            opponent=raw.get('opponent'),
            roles_raw=raw.get('roles_raw'),
            match_id=raw.get('match_id') or None,
            wb_side=raw.get('wb_side') or None,
        ))
    return annotations


def read_annotations(path: str | Path) -> list[RoleAnnotation]:
    """Read manual_roles.json."""
    annotations = annotations_from_json(load_json(path))
    log.info("%d Rollen-Eintraege gelesen aus %s", len(annotations), path)
    return annotations
