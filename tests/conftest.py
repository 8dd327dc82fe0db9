# tests/conftest.py
import os
import tempfile

import pytest
from freezegun import freeze_time
from linkedin_fakes import FakeSite

from modules.jobs_crawler.lib.backoff import RetryPolicy
from modules.jobs_crawler.lib.config import CrawlSettings


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jc-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("JOBS_CRAWLER_INPUT", raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def fake_site():
    return FakeSite()


@pytest.fixture
def fast_policy():
    return RetryPolicy.immediate()


@pytest.fixture
def make_settings():
    """Settings with politeness delays and pauses disabled, in-memory output."""

    def _make(**overrides):
        kw = {
            "search_keywords": ["python"],
            "search_location": "Remote",
            "max_items": 25,
            "min_delay": 0,
            "max_delay": 0,
            "rate_limit_pause": 0,
            "max_concurrency": 1,
        }
        kw.update(overrides)
        return CrawlSettings.from_env_and_kwargs(kw)

    return _make
