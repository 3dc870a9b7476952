"""Fuzzy registry suggestions for unresolved nicknames."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rapidfuzz.distance import JaroWinkler

from ctfstats import RegistryEntry

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.85
MAX_SUGGESTIONS = 3


@dataclass(frozen=True)
class AliasSuggestion:
    """A registry identity an unresolved nick probably belongs to."""

    nick: str
    canonical: str
    matched_name: str     # canonical or alias that scored best
    similarity: float     # 0.0 – 1.0


def _candidate_names(entry: RegistryEntry) -> list[str]:
    return [entry.canonical, *entry.aliases]


def suggest_for_nick(
    nick: str,
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[AliasSuggestion]:
    """Find the registry identities closest to one nick.

    Both sides are clan-tag-normalized and case-folded before comparing
    with Jaro-Winkler. Only the best-scoring name per identity is kept.

    Args:
        nick: Unresolved raw nick.
        registry: Player registry entries.
        normalize_nick: Clan-tag normalizer.
        threshold: Minimum similarity (0–1).

    Returns:
        Up to MAX_SUGGESTIONS suggestions, best first.
    """
    normalize = normalize_nick or (lambda value: value)
    probe = normalize(nick).casefold()
    if not probe:
        return []

    best: dict[str, AliasSuggestion] = {}
    for entry in registry:
        for name in _candidate_names(entry):
            sim = JaroWinkler.similarity(probe, normalize(name).casefold())
            if sim < threshold:
                continue
            current = best.get(entry.canonical)
            if current is None or sim > current.similarity:
                best[entry.canonical] = AliasSuggestion(
                    nick=nick,
                    canonical=entry.canonical,
                    matched_name=name,
                    similarity=round(sim, 4),
                )

    ranked = sorted(best.values(), key=lambda s: (-s.similarity, s.canonical))
    return ranked[:MAX_SUGGESTIONS]


def suggest_aliases(
    nicks: Iterable[str],
    registry: Iterable[RegistryEntry],
    normalize_nick: Callable[[str], str] | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> dict[str, list[AliasSuggestion]]:
    """Suggest registry identities for every unresolved nick that has one."""
    registry = list(registry)
    suggestions: dict[str, list[AliasSuggestion]] = {}
    for nick in sorted(nicks):
        found = suggest_for_nick(nick, registry, normalize_nick, threshold)
        if found:
            suggestions[nick] = found

    log.info("Alias-Vorschlaege fuer %d unbekannte Nicks", len(suggestions))
    return suggestions
