"""Tests for ctfstats.stats module."""

import pytest

from ctfstats import FULL_TEAM, MIX, Match, PlayerRow
from ctfstats.stats import (
    build_lineup_stats,
    build_pair_stats,
    build_team_match_rows,
    compute_player_stats,
    damage_hhi,
    make_lineup_key,
    player_stats,
)


def _row(**kwargs) -> PlayerRow:
    """Create a PlayerRow with defaults."""
    defaults = dict(
        match_id='m1', side='red', raw_nick='alpha', canonical='alpha',
        identity_key=None, resolved=True,
    )
    defaults.update(kwargs)
    return PlayerRow(**defaults)


def _match(**kwargs) -> Match:
    """Create a Match with defaults."""
    defaults = dict(
        match_id='m1', datetime_utc=None, datetime_local=None,
        date_local='2026-02-18', map='campgrounds', duration_sec=600,
        duration_min=10.0, score_red=5, score_blue=3,
        player_count_red=4, player_count_blue=4,
        team_red='wB', team_blue=MIX, class_red=FULL_TEAM, class_blue=MIX,
        qualifies_loose=True, qualifies_standings=True,
    )
    defaults.update(kwargs)
    return Match(**defaults)


def _side(match_id='m1', side='red', names=('a', 'b', 'c', 'd'), damage=(100, 100, 100, 100)):
    rows = [
        _row(match_id=match_id, side=side, canonical=n, raw_nick=n, dmg_dealt=dmg, dmg_taken=50)
        for n, dmg in zip(names, damage)
    ]
    return compute_player_stats(rows, [_match(match_id=match_id)])


class TestPlayerStats:
    """Tests for per-player derived metrics."""

    def test_basic_metrics(self):
        row = player_stats(_row(frags=10, deaths=5, dmg_dealt=3000, dmg_taken=2000), 10.0)
        assert row.dpm == 300
        assert row.net_damage == 1000
        assert row.kd_ratio == 2
        assert row.frag_efficiency == pytest.approx(10 / 15)

    def test_zero_deaths(self):
        row = player_stats(_row(frags=7, deaths=0), 10.0)
        assert row.kd_ratio == 7

    def test_zero_fights(self):
        row = player_stats(_row(), 10.0)
        assert row.frag_efficiency == 0
        assert row.kd_ratio == 0

    def test_zero_duration(self):
        row = player_stats(_row(dmg_dealt=500), 0)
        assert row.dpm == 0

    def test_weapon_shares(self):
        row = player_stats(_row(dmg_dealt=1000, rl=500, rg=250, lg=250), 10.0)
        assert row.rl_share == 0.5
        assert row.rg_share == 0.25
        assert row.lg_share == 0.25
        assert row.sg_share == 0

    def test_weapon_shares_zero_damage(self):
        row = player_stats(_row(rl=10), 10.0)
        assert row.rl_share == 0

    def test_cap_contribution(self):
        assert player_stats(_row(caps=2, defends=3), 10.0).cap_contribution == 5

    def test_original_row_unchanged(self):
        row = _row(dmg_dealt=100)
        player_stats(row, 1.0)
        assert row.dpm == 0


class TestDamageHhi:
    """Tests for the damage concentration index."""

    def test_equal_split(self):
        assert damage_hhi([100, 100, 100, 100]) == pytest.approx(0.25)

    @pytest.mark.parametrize('n', [1, 2, 3, 5])
    def test_equal_split_is_one_over_n(self, n):
        assert damage_hhi([250] * n) == pytest.approx(1 / n)

    def test_single_carry(self):
        assert damage_hhi([400, 0, 0, 0]) == 1.0

    def test_zero_damage(self):
        assert damage_hhi([0, 0, 0, 0]) == 0

    @pytest.mark.parametrize('damages', [[1, 2, 3, 4], [1000, 1, 1, 1], [5], [0, 7]])
    def test_bounds(self, damages):
        assert 0 < damage_hhi(damages) <= 1

    def test_player_contribution(self):
        # 100 of 400 contributes (100/400)^2, 300 of 400 contributes (300/400)^2
        assert damage_hhi([100, 300, 0, 0]) == pytest.approx(0.0625 + 0.5625)


class TestLineupKey:
    """Tests for lineup/pair keys."""

    def test_order_independent(self):
        assert make_lineup_key(['d', 'a', 'c', 'b']) == make_lineup_key(['b', 'c', 'a', 'd'])
        assert make_lineup_key(['d', 'a', 'c', 'b']) == 'a+b+c+d'


class TestBuildTeamMatchRows:
    """Tests for team-match aggregation."""

    def test_one_row_per_known_side(self):
        rows = _side() + _side(side='blue', names=('w', 'x', 'y', 'z'))
        team_rows = build_team_match_rows([_match()], rows)
        assert len(team_rows) == 1
        assert team_rows[0].team_name == 'wB'
        assert team_rows[0].side == 'red'
        assert team_rows[0].opponent_team == MIX

    def test_aggregates(self):
        rows = _side(damage=(100, 100, 100, 100))
        tr = build_team_match_rows([_match()], rows)[0]
        assert tr.result == 'W'
        assert tr.cap_diff == 2
        assert tr.total_damage == 400
        assert tr.avg_net_damage == 50
        assert tr.avg_dpm == 10
        assert tr.damage_hhi == pytest.approx(0.25)
        assert tr.lineup_key == 'a+b+c+d'
        assert tr.qualifies_loose is True

    def test_blue_side_result(self):
        match = _match(team_red=MIX, team_blue='wB')
        rows = _side(side='blue')
        tr = build_team_match_rows([match], rows)[0]
        assert tr.result == 'L'
        assert (tr.score_for, tr.score_against) == (3, 5)

    def test_draw(self):
        tr = build_team_match_rows([_match(score_blue=5)], _side())[0]
        assert tr.result == 'D'

    def test_known_team_without_players_skipped(self):
        assert build_team_match_rows([_match()], []) == []

    def test_lineup_key_permutation_invariant(self):
        names = ('d', 'b', 'a', 'c')
        forward = build_team_match_rows([_match()], _side(names=names))[0]
        backward = build_team_match_rows([_match()], _side(names=tuple(reversed(names))))[0]
        assert forward.lineup_key == backward.lineup_key

    def test_hhi_scenario(self):
        rows = _side(damage=(100, 100, 100, 100))
        rl_row = rows[0]
        assert rl_row.dmg_dealt == 100
        tr = build_team_match_rows([_match()], rows)[0]
        assert tr.total_damage == 400
        assert (rl_row.dmg_dealt / tr.total_damage) ** 2 == pytest.approx(0.0625)


class TestPairAndLineupStats:
    """Tests for focus-team synergy statistics."""

    def _dataset(self):
        m1 = _match(match_id='m1', map='campgrounds')
        m2 = _match(match_id='m2', map='troubled_waters', score_red=1, score_blue=4,
                    qualifies_strict=True)
        m3 = _match(match_id='m3', team_red='Foo')
        rows = (
            _side('m1', names=('a', 'b', 'c', 'd'), damage=(300, 100, 100, 100))
            + _side('m2', names=('a', 'b', 'c', 'e'))
            + _side('m3', names=('a', 'b', 'x', 'y'))
        )
        team_rows = build_team_match_rows([m1, m2, m3], rows)
        return team_rows, rows

    def test_pair_counts(self):
        team_rows, rows = self._dataset()
        pairs = {p.pair_key: p for p in build_pair_stats(team_rows, 'wB', rows)}
        ab = pairs['a+b']
        assert ab.games == 2
        assert ab.wins == 1
        assert ab.losses == 1
        assert ab.wins + ab.losses + ab.draws == ab.games
        assert ab.maps_played == ['campgrounds', 'troubled_waters']
        assert 'x+y' not in pairs

    def test_pair_net_damage_is_sum_of_the_two(self):
        team_rows, rows = self._dataset()
        pairs = {p.pair_key: p for p in build_pair_stats(team_rows, 'wB', rows)}
        # m1: a=250, b=50; m2: a=50, b=50
        assert pairs['a+b'].total_net_damage == 400
        assert pairs['a+b'].avg_net_damage == 200
        assert pairs['a+d'].total_net_damage == 300

    def test_pairs_sorted_by_games(self):
        team_rows, rows = self._dataset()
        pairs = build_pair_stats(team_rows, 'wB', rows)
        assert pairs[0].games == 2
        assert [p.pair_key for p in pairs[:3]] == ['a+b', 'a+c', 'b+c']

    def test_pair_key_symmetric(self):
        team_rows, rows = self._dataset()
        keys = [p.pair_key for p in build_pair_stats(team_rows, 'wB', rows)]
        assert len(keys) == len(set(keys))
        assert 'b+a' not in keys

    def test_lineup_stats(self):
        team_rows, _ = self._dataset()
        lineups = {l.lineup_key: l for l in build_lineup_stats(team_rows, 'wB')}
        assert set(lineups) == {'a+b+c+d', 'a+b+c+e'}
        strict = lineups['a+b+c+e']
        assert (strict.games, strict.losses) == (1, 1)
        assert (strict.strict_games, strict.strict_losses, strict.strict_wins) == (1, 1, 0)
        loose = lineups['a+b+c+d']
        assert loose.strict_games == 0
        assert loose.win_pct == 1.0
        assert loose.maps_played == {'campgrounds': 1}
        assert loose.avg_cap_diff == 2

    def test_other_focus_team(self):
        team_rows, rows = self._dataset()
        lineups = build_lineup_stats(team_rows, 'Foo')
        assert [l.lineup_key for l in lineups] == ['a+b+x+y']
        assert build_pair_stats(team_rows, 'Nobody', rows) == []
