"""Shared test fixtures."""

from pathlib import Path

import pytest

from ctfstats.pipeline import process_data
from ctfstats.reader import read_annotations, read_matches, read_registry, read_team_config


DATA_DIR = Path(__file__).resolve().parent.parent / 'data'


@pytest.fixture(scope='session')
def data_dir() -> Path:
    """Path to the data directory."""
    return DATA_DIR


@pytest.fixture(scope='session')
def team_config():
    """TeamConfig from team_config.json."""
    return read_team_config(DATA_DIR / 'team_config.json')


@pytest.fixture(scope='session')
def registry(team_config):
    """All entries from player_registry.json."""
    return read_registry(DATA_DIR / 'player_registry.json', team_config)


@pytest.fixture(scope='session')
def raw_matches():
    """Raw match export from matches.json."""
    return read_matches(DATA_DIR / 'matches.json')


@pytest.fixture
def annotations():
    """Fresh role annotations from manual_roles.json."""
    return read_annotations(DATA_DIR / 'manual_roles.json')


@pytest.fixture(scope='session')
def pipeline_result(raw_matches, registry, team_config):
    """One full pipeline run over the sample data."""
    annotations = read_annotations(DATA_DIR / 'manual_roles.json')
    return process_data(raw_matches, registry, team_config, annotations)
