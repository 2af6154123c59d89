"""Shared test fixtures."""

from types import SimpleNamespace
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lockstake.core.event_bus import EventBus
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import InMemoryCustody
from lockstake.core.staking.guard import ReentrancyGuard
from lockstake.core.staking.ledger import PositionLedger
from lockstake.core.staking.models import LedgerState
from lockstake.core.staking.params import ParameterSnapshot, static_parameters
from lockstake.core.staking.treasury import RewardsTreasury
from lockstake.db.database import get_db
from lockstake.db.models import Base
from lockstake.main import app

T0 = 1_700_000_000  # 프로그램 시작 시각 (테스트 기준)

TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(TEST_ENGINE)
TestSession = sessionmaker(bind=TEST_ENGINE, autocommit=False, autoflush=False)


def _override_get_db():
    db = TestSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db


class FakeClock:
    """결정적 시계: 테스트가 직접 시간을 옮긴다"""

    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture()
def client() -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    return TestClient(app)


@pytest.fixture()
def db_session() -> Session:
    """Fresh in-memory database session with all tables created."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_core():
    """Core 조립 팩토리: ledger, treasury, custody, state, bus, access"""

    def _make(
        params: Optional[ParameterSnapshot] = None,
        program_start: int = T0,
    ) -> SimpleNamespace:
        params = params or ParameterSnapshot(boost_duration=0)
        state = LedgerState(program_start=program_start)
        custody = InMemoryCustody(holder="lockstake")
        access = AccessPolicy(admin="admin", treasury="treasury")
        guard = ReentrancyGuard()
        bus = EventBus()
        provider = static_parameters(params)
        return SimpleNamespace(
            params=params,
            state=state,
            custody=custody,
            access=access,
            guard=guard,
            bus=bus,
            ledger=PositionLedger(state, custody, provider, access, guard, bus),
            treasury=RewardsTreasury(state, custody, access, guard, bus),
        )

    return _make
