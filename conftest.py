import shutil
from pathlib import Path

import pytest

from mystery_maker import generation, storage

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe and re-init data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    storage.init_storage(TEST_DATA_DIR)
    generation.toggle_test_mode(False)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from a developer's .env."""
    for name in (
        "ANTHROPIC_API_KEY", "USE_REAL_API", "GENERATION_WEBHOOK_URL",
        "MURDER_MYSTERY_FREE_PROMPT", "MYSTERY_FREE_PROMPT", "MURDER_MYSTERY_PAID_PROMPT",
        "AI_PROXY_URL", "AI_FALLBACK_PROXY_URL",
    ):
        monkeypatch.delenv(name, raising=False)
