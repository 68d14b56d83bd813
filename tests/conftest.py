"""
Shared pytest fixtures for all tests.
"""
import os

import pytest

from keyboard_layout import DEFAULT_LAYOUT
from optimize_layout import load_config
from penalty import PenaltyModel
from quartads import prepare_quartad_list

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

PANGRAM = "the quick brown fox jumps over the lazy dog"

@pytest.fixture
def config():
    """Configuration shipped with the project."""
    return load_config(os.path.join(ROOT, 'config.yaml'))

@pytest.fixture
def model(config):
    return PenaltyModel.from_config(config)

@pytest.fixture
def pangram():
    return PANGRAM

@pytest.fixture
def pangram_quartads():
    return prepare_quartad_list(PANGRAM, DEFAULT_LAYOUT.get_position_map())

@pytest.fixture
def small_config(config):
    """Configuration with a short annealing schedule for fast searches."""
    config['annealing']['iterations'] = 300
    config['search']['top'] = 3
    config['output']['save_results'] = False
    return config
