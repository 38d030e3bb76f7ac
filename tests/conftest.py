import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'policyplane' and tests/ importable as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from helpers.cache_utils import reset_policyplane_caches


@pytest.fixture(autouse=True)
def _reset_policyplane_state(monkeypatch):
    """Fresh config caches and no leaked POLICYPLANE_* overrides for every test."""
    for key in list(os.environ):
        if key.startswith("POLICYPLANE_"):
            monkeypatch.delenv(key, raising=False)
    reset_policyplane_caches()
    yield
    reset_policyplane_caches()


@pytest.fixture
def isolated_project_env(tmp_path, monkeypatch):
    """Isolated repository root with an empty ``.policyplane/config`` directory."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".policyplane" / "config").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture
def audit_log(isolated_project_env):
    """Enable the JSONL audit sink for the isolated project; returns its path."""
    from helpers.env import write_project_config

    path = isolated_project_env / "audit" / "events.jsonl"
    write_project_config(
        isolated_project_env,
        "logging.yaml",
        {"logging": {"audit": {"enabled": True, "path": str(path)}}},
    )
    return path
