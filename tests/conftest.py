"""Shared fixtures."""

import pytest
import pytest_asyncio

from searchprobe.core.config import Settings, load_settings
from searchprobe.memory.store import BatchStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Fast settings isolated from the environment and .env."""
    return load_settings(
        _env_file=None,
        database_path=str(tmp_path / "probe.db"),
        artifacts_dir=str(tmp_path / "artifacts"),
        settle_delay_ms=0,
        results_settle_ms=0,
        action_timeout_s=1.0,
        max_transient_retries=2,
        batch_concurrency=2,
        batch_page_size=10,
        poll_interval_s=0.05,
        item_timeout_s=2.0,
        scheduler_autostart=False,
    )


@pytest_asyncio.fixture
async def store(tmp_path):
    """Initialized batch store backed by a temp file."""
    batch_store = BatchStore(str(tmp_path / "store.db"))
    await batch_store.initialize()
    yield batch_store
    await batch_store.close()
