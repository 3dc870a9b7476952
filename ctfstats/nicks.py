"""Clan-tag stripping for in-game nicknames."""

import re
from collections.abc import Callable, Iterable

# Patterns that mean "cut everything up to and including the last pipe"
_PIPE_PATTERNS = {r'\|', '|'}


def build_nick_normalizer(patterns: Iterable[str] | None) -> Callable[[str], str]:
    """Build a normalizer from clan_tag_patterns.

    Patterns are applied in the given order, case-insensitively. The pipe
    pattern removes everything before and including the last ``|``; any
    other pattern is removed wherever it matches (usually an anchored
    prefix such as ``^wB\\.``).

    Args:
        patterns: Regex pattern strings from team_config.json.

    Returns:
        Function mapping a raw nick to its normalized form. Without
        patterns the nick is returned unchanged.
    """
    patterns = list(patterns or [])
    if not patterns:
        return lambda nick: nick

    steps: list[re.Pattern | None] = [
        None if p in _PIPE_PATTERNS else re.compile(p, re.IGNORECASE)
        for p in patterns
    ]

    def normalize_nick(nick: str) -> str:
        result = nick
        for regex in steps:
            if regex is None:
                result = result.rpartition('|')[2]
            else:
                result = regex.sub('', result)
        return result.strip()

    return normalize_nick
