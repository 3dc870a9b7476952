"""Registry integrity checks: alias collisions and identity-key consistency."""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ctfstats import PlayerRow, RegistryEntry

log = logging.getLogger(__name__)


@dataclass
class AliasCollision:
    """A normalized name claimed by more than one canonical player."""

    normalized: str
    players: list[tuple[str, str]]   # (canonical, original alias)


@dataclass
class IdentityKeyCollision:
    """An identity key claimed by more than one registry entry."""

    identity_key: str
    players: list[str]


@dataclass
class IdentityKeyMismatch:
    """An identity key that resolved to several canonical names in match data."""

    identity_key: str
    canonicals: list[str]


@dataclass
class IntegrityReport:
    alias_collisions: list[AliasCollision] = field(default_factory=list)
    identity_key_collisions: list[IdentityKeyCollision] = field(default_factory=list)
    canonical_key_mismatches: list[IdentityKeyMismatch] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (
            self.alias_collisions
            or self.identity_key_collisions
            or self.canonical_key_mismatches
        )


def find_alias_collisions(
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str],
) -> list[AliasCollision]:
    """Find normalized names shared by different canonical players.

    Every canonical name and alias is registered both case-folded as-is and
    case-folded after clan-tag stripping.
    """
    # normalized form -> {canonical: original alias}
    seen: dict[str, dict[str, str]] = defaultdict(dict)

    for entry in registry:
        for original in (entry.canonical, *entry.aliases):
            raw = original.casefold()
            normalized = normalize_nick(original).casefold()
            for form in {raw, normalized}:
                if form:
                    seen[form].setdefault(entry.canonical, original)

    collisions = [
        AliasCollision(normalized=form, players=sorted(claimants.items()))
        for form, claimants in seen.items()
        if len(claimants) > 1
    ]
    return sorted(collisions, key=lambda c: c.normalized)


def find_identity_key_collisions(registry: Iterable[RegistryEntry]) -> list[IdentityKeyCollision]:
    """Find identity keys shared by several distinct canonical names."""
    by_key: dict[str, set[str]] = defaultdict(set)
    for entry in registry:
        if entry.identity_key:
            by_key[str(entry.identity_key)].add(entry.canonical)

    return [
        IdentityKeyCollision(identity_key=key, players=sorted(names))
        for key, names in sorted(by_key.items())
        if len(names) > 1
    ]


def find_canonical_key_mismatches(player_rows: Iterable[PlayerRow]) -> list[IdentityKeyMismatch]:
    """Find identity keys that resolved to more than one canonical name."""
    by_key: dict[str, set[str]] = defaultdict(set)
    for row in player_rows:
        if row.resolved and row.identity_key:
            by_key[str(row.identity_key)].add(row.canonical)

    return [
        IdentityKeyMismatch(identity_key=key, canonicals=sorted(names))
        for key, names in sorted(by_key.items())
        if len(names) > 1
    ]


def check_registry_integrity(
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str],
    player_rows: Iterable[PlayerRow],
) -> IntegrityReport:
    """Run all registry integrity checks.

    Args:
        registry: Player registry entries.
        normalize_nick: Clan-tag normalizer from the team config.
        player_rows: Resolved player rows (usually the in-scope rows).

    Returns:
        IntegrityReport; every list is sorted so the result does not depend
        on input order.
    """
    registry = list(registry)
    report = IntegrityReport(
        alias_collisions=find_alias_collisions(registry, normalize_nick),
        identity_key_collisions=find_identity_key_collisions(registry),
        canonical_key_mismatches=find_canonical_key_mismatches(player_rows),
    )
    if not report.is_clean:
        log.warning(
            "Registry-Probleme: %d Alias-Kollisionen, %d doppelte IDs, %d ID-Abweichungen",
            len(report.alias_collisions),
            len(report.identity_key_collisions),
            len(report.canonical_key_mismatches),
        )
    return report
