"""Tests for ctfstats.reader module."""

import json

import pytest

from ctfstats import RegistryEntry, RoleAnnotation, TeamConfig
from ctfstats.reader import (
    annotations_from_json,
    config_from_json,
    load_json,
    read_matches,
    registry_from_json,
)


CONFIG = TeamConfig(focus_team='wB', scope_date='2026-01-01')


class TestLoadJson:
    """Tests for raw JSON loading."""

    def test_utf8_bom(self, tmp_path):
        f = tmp_path / 'bom.json'
        f.write_bytes('﻿[1, 2]'.encode('utf-8'))
        assert load_json(f) == [1, 2]

    def test_invalid_json_raises(self, tmp_path):
        f = tmp_path / 'bad.json'
        f.write_text('{not json', encoding='utf-8')
        with pytest.raises(ValueError, match='kein gueltiges JSON'):
            load_json(f)

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_json('nonexistent.json')


class TestReadMatches:
    """Tests for the match export."""

    def test_sample_count(self, raw_matches):
        assert len(raw_matches) == 4

    def test_top_level_object_rejected(self, tmp_path):
        f = tmp_path / 'matches.json'
        f.write_text(json.dumps({'match_id': 'm1'}), encoding='utf-8')
        with pytest.raises(ValueError, match='JSON-Array'):
            read_matches(f)


class TestConfigFromJson:
    """Tests for team config loading."""

    def test_sample(self, team_config):
        assert team_config.focus_team == 'wB'
        assert team_config.scope_date == '2026-01-01'
        assert team_config.clan_tag_patterns == (r'\|', r'^wB\.')
        assert team_config.role_normalize['o'] == 'off'
        assert team_config.utc_offset_hours == 1

    def test_missing_fields(self):
        with pytest.raises(ValueError, match='scope_date'):
            config_from_json({'focus_team': 'wB'})

    def test_era_keys_and_offset(self):
        config = config_from_json({
            'focus_team': 'wB', 'scope_date': '2026-01-01',
            'era_before_key': 'team_s1', 'era_after_key': 'team_s2', 'utc_offset_hours': 2,
        })
        assert (config.era_before_key, config.era_after_key) == ('team_s1', 'team_s2')
        assert config.utc_offset_hours == 2

    def test_role_normalize_keys_lowercased(self):
        config = config_from_json({'focus_team': 'a', 'scope_date': 'b', 'role_normalize': {'D': 'def'}})
        assert config.role_normalize == {'d': 'def'}

    def test_input_dict_not_mutated(self):
        data = {'focus_team': 'wB', 'scope_date': '2026-01-01', 'role_normalize': {'D': 'def'}}
        config_from_json(data)
        assert data == {'focus_team': 'wB', 'scope_date': '2026-01-01', 'role_normalize': {'D': 'def'}}


class TestRegistryFromJson:
    """Tests for registry loading."""

    def test_sample(self, registry):
        assert len(registry) == 11
        alpha = registry[0]
        assert alpha == RegistryEntry(
            canonical='alpha', aliases=('wB.alpha', 'alf'), identity_key='1001',
            team_before='wB', team_after='wB',
        )

    def test_identity_key_preferred_over_steam_id(self):
        entries = registry_from_json(
            [{'canonical': 'a', 'identity_key': 'k1', 'steam_id': 's1'}], CONFIG,
        )
        assert entries[0].identity_key == 'k1'

    def test_numeric_steam_id(self):
        entries = registry_from_json([{'canonical': 'a', 'steam_id': 7656119}], CONFIG)
        assert entries[0].identity_key == '7656119'

    def test_custom_era_keys(self):
        config = TeamConfig(focus_team='x', scope_date='y', era_before_key='old', era_after_key='new')
        entries = registry_from_json([{'canonical': 'a', 'old': 'A', 'new': 'B'}], config)
        assert (entries[0].team_before, entries[0].team_after) == ('A', 'B')

    def test_entry_without_canonical_skipped(self):
        entries = registry_from_json([{'aliases': ['x']}, {'canonical': 'b'}], CONFIG)
        assert [e.canonical for e in entries] == ['b']

    def test_not_a_list(self):
        with pytest.raises(ValueError):
            registry_from_json({'canonical': 'a'}, CONFIG)


class TestAnnotationsFromJson:
    """Tests for manual role annotations."""

    def test_sample(self, annotations):
        assert len(annotations) == 7
        assert all(isinstance(a, RoleAnnotation) for a in annotations)
        assert annotations[0].match_id is None
        assert annotations[4].match_id == 'm1'

    def test_empty_match_id_is_unlinked(self):
        entries = annotations_from_json([{'match_id': '', 'date_local': '2026-02-18', 'map': 'x'}])
        assert entries[0].match_id is None
