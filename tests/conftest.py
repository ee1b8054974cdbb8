"""
pytest configuration for csrest tests.

Adds src directory to Python path for imports and isolates tests from the
caller's environment.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from config.config import ENV_OVERRIDES, reset_config  # noqa: E402
from core.logging.context import clear_log_context  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep CSREST_* variables and cached config/log context out of tests."""
    for env_var in ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    reset_config()
    clear_log_context()
    yield
    reset_config()
    clear_log_context()
