"""
Pytest fixtures for the recovery engine test suite.

Provides:
- A fresh SQLite in-memory database per test (or DATABASE_URL when set)
- A session factory and a per-test session
- A deterministic clock
- The bundled rule configuration
- Structured log capture

Environment Variables:
- DATABASE_URL: run the suite against another database (e.g. PostgreSQL).
  Tables are dropped and recreated for every test.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import datetime, timezone
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from recovery_config import get_active_config
from recovery_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from recovery_kernel.domain.clock import DeterministicClock
from recovery_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

DEFAULT_TEST_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture recovery_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ingestion_service):
            ingestion_service.ingest_text_sync(...)
            logs = captured_logs()
            assert any(r["message"] == "ingestion_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("recovery_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Configuration and clock
# =============================================================================


@pytest.fixture(scope="session")
def recovery_config():
    """The bundled default rule set."""
    return get_active_config()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh database for one test; tables created, listeners registered."""
    engine = init_engine_from_url(get_database_url())
    drop_tables()
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """A session for assertions.  Tests that write commit explicitly."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def ingestion_service(session_factory, deterministic_clock, recovery_config):
    from recovery_ingestion.services import IngestionService
    from recovery_services.locks import KeyedLockRegistry

    return IngestionService(
        session_factory,
        clock=deterministic_clock,
        config=recovery_config,
        lock_registry=KeyedLockRegistry(),
    )
