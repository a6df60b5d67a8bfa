"""Shared test fixtures: a file-backed SQLite database per test and fake HTTP."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
import structlog

from gifview.db import Base, get_engine
from gifview.repositories import Repositories


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'gifview.db'}"


@pytest.fixture
def engine(db_url):
    """SQLite file database; queue workers write from their own threads."""
    eng = get_engine(db_url)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def repos(engine):
    return Repositories.from_engine(engine)


@pytest.fixture
def log():
    return structlog.get_logger()


@pytest.fixture
def http_factory() -> Callable[[Callable[[httpx.Request], httpx.Response]], Callable[..., httpx.Client]]:
    """Build a ``create_http_client`` stand-in whose clients answer from *handler*."""

    def make(handler: Callable[[httpx.Request], httpx.Response]) -> Callable[..., httpx.Client]:
        def factory(**kwargs) -> httpx.Client:
            return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)

        return factory

    return make
