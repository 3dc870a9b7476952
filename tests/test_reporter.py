"""Tests for ctfstats.reporter module and the analyze CLI."""

import pytest

from analyze import build_parser, run
from ctfstats import FULL_TEAM, MIX, STACK_3PLUS
from ctfstats.reporter import compute_health_stats, print_summary, write_health_report


class TestComputeHealthStats:
    """Tests for the health counts over the sample data."""

    def test_scope_counts(self, pipeline_result):
        stats = compute_health_stats(pipeline_result)
        assert (stats['total'], stats['in_scope'], stats['excluded']) == (4, 2, 2)
        assert stats['all_4v4'] == 3
        assert stats['scoped_4v4'] == 2
        assert stats['player_rows'] == 16
        assert stats['date_range'] == '2026-02-18 bis 2026-02-18'

    def test_qualification_counts(self, pipeline_result):
        stats = compute_health_stats(pipeline_result)
        assert stats['qual_loose'] == 1
        assert stats['qual_strict'] == 1
        assert stats['qual_h2h'] == 1
        assert stats['qual_standings'] == 2
        assert stats['class_counts'] == {FULL_TEAM: 2, STACK_3PLUS: 1, MIX: 1}

    def test_player_findings(self, pipeline_result):
        stats = compute_health_stats(pipeline_result)
        assert stats['unresolved'] == 4
        assert stats['unaffiliated'] == ['hotel']
        assert stats['missing_identity_key'] == []
        assert dict(stats['top_unresolved']) == {'randomguy': 1, 'other1': 1, 'other2': 1}

    def test_role_counts(self, pipeline_result):
        stats = compute_health_stats(pipeline_result)
        assert stats['roles_invalid_score'] == 1
        assert stats['roles_no_match'] == 1
        assert stats['roles_ambiguous'] == 0
        assert stats['roles_orphaned'] == 1

    def test_registry_counts(self, pipeline_result):
        stats = compute_health_stats(pipeline_result)
        assert stats['alias_collisions'] == 1
        assert stats['identity_key_collisions'] == 1
        assert stats['key_mismatches'] == 0


class TestWriteHealthReport:
    """Tests for the HTML report."""

    def test_report_written(self, pipeline_result, tmp_path):
        out = tmp_path / 'reports' / 'health.html'
        write_health_report(pipeline_result, out, 'sample')
        html = out.read_text(encoding='utf-8')
        assert html.startswith('<!DOCTYPE html>')
        assert 'Data Health: sample' in html
        assert pipeline_result.diagnostics.data_hash in html
        assert 'alpha+bravo+charlie+delta' in html
        assert 'randomguy' in html
        assert 'invalid_score' in html

    def test_title_escaped(self, pipeline_result, tmp_path):
        out = tmp_path / 'health.html'
        write_health_report(pipeline_result, out, '<b>x</b>')
        assert '&lt;b&gt;x&lt;/b&gt;' in out.read_text(encoding='utf-8')


class TestPrintSummary:
    """Tests for the stdout summary."""

    def test_summary_output(self, pipeline_result, capsys):
        print_summary(pipeline_result, 'sample')
        out = capsys.readouterr().out
        assert f"=== Data Health: sample [{pipeline_result.diagnostics.data_hash}] ===" in out
        assert 'Im Scope (ab 2026-01-01):' in out
        assert 'Alias-Kollisionen:' in out


class TestCli:
    """Tests for argument parsing and the run helper."""

    def _args(self, data_dir, *extra):
        return build_parser().parse_args([
            '--matches', str(data_dir / 'matches.json'),
            '--registry', str(data_dir / 'player_registry.json'),
            '--config', str(data_dir / 'team_config.json'),
            *extra,
        ])

    def test_defaults(self, data_dir):
        args = self._args(data_dir)
        assert args.roles is None
        assert args.html is None
        assert args.summary is False
        assert args.fuzzy_threshold == 0.85

    def test_missing_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--matches', 'x.json'])

    def test_run_with_roles(self, data_dir):
        args = self._args(data_dir, '--roles', str(data_dir / 'manual_roles.json'))
        result = run(args)
        assert [m.match_id for m in result.matches] == ['m1', 'm2']
        assert result.diagnostics.roles_merged == 6

    def test_run_without_roles(self, data_dir):
        result = run(self._args(data_dir))
        assert result.diagnostics.total_role_entries == 0
        assert result.diagnostics.roles_still_unlinked == []
