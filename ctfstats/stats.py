"""Derived player metrics, team-match aggregates, pair and lineup stats."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from itertools import combinations

from ctfstats import (
    MIX,
    WEAPONS,
    LineupStat,
    Match,
    PairStat,
    PlayerRow,
    TeamMatchRow,
)
from ctfstats.teams import group_by_side

log = logging.getLogger(__name__)


def make_lineup_key(names: Iterable[str]) -> str:
    """Order-independent key for a set of canonical names."""
    return '+'.join(sorted(names))


def player_stats(row: PlayerRow, duration_min: float) -> PlayerRow:
    """Compute the derived per-player metrics for one row.

    Args:
        row: Player row with raw counters.
        duration_min: Match duration in minutes.

    Returns:
        Copy of the row with dpm, net damage, K/D, frag efficiency, cap
        contribution and weapon damage shares filled in.
    """
    total = row.dmg_dealt
    shares = {
        f'{weapon}_share': (getattr(row, weapon) / total if total else 0.0)
        for weapon in WEAPONS
    }
    fights = row.frags + row.deaths
    return replace(
        row,
        dpm=row.dmg_dealt / duration_min if duration_min > 0 else 0.0,
        net_damage=row.dmg_dealt - row.dmg_taken,
        kd_ratio=row.frags / max(row.deaths, 1),
        frag_efficiency=row.frags / fights if fights > 0 else 0.0,
        cap_contribution=row.caps + row.defends,
        **shares,
    )


def compute_player_stats(player_rows: list[PlayerRow], matches: list[Match]) -> list[PlayerRow]:
    """Apply player_stats to every row using its match's duration."""
    durations = {m.match_id: m.duration_min for m in matches}
    return [player_stats(row, durations.get(row.match_id, 0.0)) for row in player_rows]


def damage_hhi(damages: list[int]) -> float:
    """Herfindahl-Hirschman index of damage shares on one side.

    0.25 means four equal contributors, 1.0 means one player did all the
    damage. 0 when the side dealt no damage.
    """
    total = sum(damages)
    if total <= 0:
        return 0.0
    return sum((d / total) ** 2 for d in damages)


def _result(score_for: int, score_against: int) -> str:
    if score_for > score_against:
        return 'W'
    if score_for < score_against:
        return 'L'
    return 'D'


def build_team_match_rows(matches: list[Match], player_rows: list[PlayerRow]) -> list[TeamMatchRow]:
    """Build one TeamMatchRow per side whose team is known (not MIX).

    Player rows must already carry derived stats (see compute_player_stats).
    """
    groups = group_by_side(player_rows)
    rows: list[TeamMatchRow] = []

    for match in matches:
        sides = (
            ('red', match.team_red, match.team_blue, match.score_red, match.score_blue),
            ('blue', match.team_blue, match.team_red, match.score_blue, match.score_red),
        )
        for side, team, opponent, score_for, score_against in sides:
            if not team or team == MIX:
                continue
            players = groups.get((match.match_id, side), [])
            if not players:
                continue

            n = len(players)
            names = sorted(p.canonical for p in players)
            rows.append(TeamMatchRow(
                match_id=match.match_id,
                team_name=team,
                side=side,
                map=match.map,
                date_local=match.date_local,
                opponent_team=opponent,
                result=_result(score_for, score_against),
                score_for=score_for,
                score_against=score_against,
                cap_diff=score_for - score_against,
                total_damage=sum(p.dmg_dealt for p in players),
                total_frags=sum(p.frags for p in players),
                total_deaths=sum(p.deaths for p in players),
                total_caps=sum(p.caps for p in players),
                total_defends=sum(p.defends for p in players),
                avg_dpm=sum(p.dpm for p in players) / n,
                avg_net_damage=sum(p.net_damage for p in players) / n,
                avg_kd=sum(p.kd_ratio for p in players) / n,
                damage_hhi=damage_hhi([p.dmg_dealt for p in players]),
                player_names=names,
                lineup_key=make_lineup_key(names),
                duration_min=match.duration_min,
                qualifies_loose=match.qualifies_loose,
                qualifies_strict=match.qualifies_strict,
                qualifies_h2h=match.qualifies_h2h,
                qualifies_standings=match.qualifies_standings,
            ))

    log.info("%d Team-Match-Zeilen erzeugt", len(rows))
    return rows


def _tally(stat, result: str) -> None:
    stat.games += 1
    if result == 'W':
        stat.wins += 1
    elif result == 'L':
        stat.losses += 1
    else:
        stat.draws += 1


def _sort_stats(stats: list, key_attr: str) -> list:
    return sorted(stats, key=lambda s: (-s.games, getattr(s, key_attr)))


def build_pair_stats(
    team_match_rows: list[TeamMatchRow],
    focus_team: str,
    player_rows: list[PlayerRow],
) -> list[PairStat]:
    """Aggregate every 2-player combination of the focus team.

    ``total_net_damage`` sums the two named players' own net damage over
    their joint appearances, not the team average.

    Returns:
        Pair stats sorted by games (descending), then pair key.
    """
    net_damage: dict[tuple[str, str, str], int] = {}
    for p in player_rows:
        net_damage[(p.match_id, p.side, p.canonical)] = p.net_damage

    pairs: dict[str, PairStat] = {}
    for row in team_match_rows:
        if row.team_name != focus_team:
            continue
        for a, b in combinations(sorted(row.player_names), 2):
            pair_key = make_lineup_key((a, b))
            pair = pairs.get(pair_key)
            if pair is None:
                pair = pairs[pair_key] = PairStat(pair_key=pair_key, players=sorted((a, b)))
            _tally(pair, row.result)
            pair.total_net_damage += (
                net_damage.get((row.match_id, row.side, a), 0)
                + net_damage.get((row.match_id, row.side, b), 0)
            )
            if row.map not in pair.maps_played:
                pair.maps_played.append(row.map)

    return _sort_stats(list(pairs.values()), 'pair_key')


def build_lineup_stats(team_match_rows: list[TeamMatchRow], focus_team: str) -> list[LineupStat]:
    """Aggregate the focus team's exact rosters by lineup key.

    A parallel sub-count covers strict-qualifying matches only.

    Returns:
        Lineup stats sorted by games (descending), then lineup key.
    """
    lineups: dict[str, LineupStat] = {}
    for row in team_match_rows:
        if row.team_name != focus_team:
            continue
        lineup = lineups.get(row.lineup_key)
        if lineup is None:
            lineup = lineups[row.lineup_key] = LineupStat(
                lineup_key=row.lineup_key,
                player_names=list(row.player_names),
            )
        _tally(lineup, row.result)
        lineup.total_cap_diff += row.cap_diff
        lineup.total_net_damage += row.avg_net_damage
        lineup.total_hhi += row.damage_hhi
        lineup.maps_played[row.map] = lineup.maps_played.get(row.map, 0) + 1

        if row.qualifies_strict:
            lineup.strict_games += 1
            if row.result == 'W':
                lineup.strict_wins += 1
            elif row.result == 'L':
                lineup.strict_losses += 1

    return _sort_stats(list(lineups.values()), 'lineup_key')
