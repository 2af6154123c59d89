"""StakingService 테스트: 영속화, 일괄 처리, 감사 로그, 동시 호출"""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from lockstake.config import Settings
from lockstake.core.event_bus import EventBus
from lockstake.core.event_types import EventTypes
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import InMemoryCustody
from lockstake.core.staking.errors import (
    ClaimTooEarlyError,
    ReentrancyError,
    StakingError,
)
from lockstake.core.staking.params import (
    DAY_SECONDS,
    MONTH_SECONDS,
    WEEK_SECONDS,
    ParameterSnapshot,
    static_parameters,
)
from lockstake.db.models import LedgerEventModel, LedgerTotalsModel, PositionModel
from lockstake.services.staking_service import (
    StakingService,
    build_parameter_snapshot,
)

T0 = 1_700_000_000
PARAMS = ParameterSnapshot(boost_duration=0)


@pytest.fixture()
def custody():
    c = InMemoryCustody(holder="lockstake")
    c.mint("alice", 10_000_000)
    c.mint("treasury", 10_000_000)
    return c


@pytest.fixture()
def access():
    return AccessPolicy(admin="admin", treasury="treasury")


@pytest.fixture()
def service(db_session, custody, access, clock):
    svc = StakingService(
        db=db_session,
        event_bus=EventBus(),
        custody=custody,
        access=access,
        parameters=static_parameters(PARAMS),
        clock=clock,
        program_start=T0,
    )
    svc.fund("treasury", 1_000_000)
    return svc


def _reload(db_session, custody, access, clock) -> StakingService:
    return StakingService(
        db=db_session,
        event_bus=EventBus(),
        custody=custody,
        access=access,
        parameters=static_parameters(PARAMS),
        clock=clock,
    )


class TestInitialization:
    def test_creates_totals_row(self, service, db_session):
        row = db_session.get(LedgerTotalsModel, 1)
        assert row is not None
        assert row.program_start == T0
        assert row.total_rewards_added == "1000000"

    def test_settings_defaults_match_parameter_defaults(self):
        assert build_parameter_snapshot(Settings(_env_file=None)) == ParameterSnapshot()


class TestPersistence:
    def test_open_writes_position_row(self, service, db_session):
        service.open_position("alice", 1_000_000, 12)
        row = db_session.query(PositionModel).filter_by(owner="alice").one()
        assert row.position_id == 0
        assert row.principal == "1000000"
        assert row.last_settled == T0

    def test_reload_restores_state(self, service, db_session, custody, access, clock):
        service.open_position("alice", 1_000_000, 12)
        service.open_position("alice", 250_000, 3)
        clock.advance(WEEK_SECONDS)
        service.claim("alice", 0)
        service.top_up("alice", 1, 5_000)

        reloaded = _reload(db_session, custody, access, clock)
        assert reloaded.state == service.state
        assert reloaded.state.program_start == T0

    def test_close_deletes_row(self, service, db_session, clock):
        service.open_position("alice", 1_000, 1)
        clock.advance(MONTH_SECONDS)
        service.close("alice", 0)
        assert db_session.query(PositionModel).count() == 0
        assert service.list_positions("alice") == []

    def test_failed_operation_leaves_rows_unchanged(self, service, db_session, clock):
        service.open_position("alice", 1_000_000, 12)
        clock.advance(DAY_SECONDS)
        with pytest.raises(ClaimTooEarlyError):
            service.claim("alice", 0)
        row = db_session.query(PositionModel).filter_by(owner="alice").one()
        assert row.last_claim == T0
        assert row.accrued_rewards == "0"

    def test_failed_commit_resyncs_owner_on_next_write(
        self, service, db_session, custody, access, clock, monkeypatch
    ):
        commit = db_session.commit

        def failing_commit():
            monkeypatch.setattr(db_session, "commit", commit)
            raise OperationalError("COMMIT", {}, Exception("disk full"))

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(OperationalError):
            service.open_position("alice", 1_000_000, 12)

        # 메모리 상태와 custody는 이미 반영, 행은 아직 없음
        assert service.get_position("alice", 0).principal == 1_000_000
        assert custody.balance_of("alice") == 9_000_000
        assert db_session.query(PositionModel).count() == 0

        service.fund("treasury", 1)
        row = db_session.query(PositionModel).filter_by(owner="alice").one()
        assert row.principal == "1000000"
        assert _reload(db_session, custody, access, clock).state == service.state


class TestAuditLog:
    def test_events_recorded_newest_first(self, service, clock):
        service.open_position("alice", 1_000_000, 12)
        clock.advance(WEEK_SECONDS)
        service.claim("alice", 0)

        events = service.events_for("alice")
        assert [e.event_type for e in events] == [
            EventTypes.REWARDS_CLAIMED,
            EventTypes.POSITION_OPENED,
        ]
        assert events[0].position_id == 0
        assert events[0].timestamp == T0 + WEEK_SECONDS
        assert events[0].data["reward"] > 0

    def test_treasury_events_have_no_owner(self, service, db_session):
        row = (
            db_session.query(LedgerEventModel)
            .filter_by(event_type=EventTypes.FUNDING_ADDED)
            .one()
        )
        assert row.owner is None
        assert row.data["amount"] == 1_000_000


class TestBatch:
    def test_claim_all_skips_failures(self, service, clock):
        service.open_position("alice", 1_000_000, 12)
        clock.advance(3 * DAY_SECONDS)
        service.open_position("alice", 500_000, 12)
        clock.advance(4 * DAY_SECONDS)

        result = service.claim_all("alice")
        assert [s.position_id for s in result.succeeded] == [0]
        assert result.failed == {1: "claim_interval_not_elapsed"}
        assert result.total_reward == result.succeeded[0].reward > 0

    def test_compound_all(self, service, clock):
        service.open_position("alice", 1_000_000, 12)
        service.open_position("alice", 1, 12)
        clock.advance(WEEK_SECONDS)

        result = service.compound_all("alice")
        assert [s.position_id for s in result.succeeded] == [0]
        assert result.failed == {1: "no_rewards"}
        assert service.get_position("alice", 0).principal == (
            1_000_000 + result.total_reward
        )


class TestQueries:
    def test_owner_summary(self, service, custody, clock):
        service.open_position("alice", 1_000_000, 48)
        clock.advance(WEEK_SECONDS)
        summary = service.owner_summary("alice")
        assert summary["position_ids"] == [0]
        assert summary["total_principal"] == 1_000_000
        assert summary["pending_rewards"] == service.pending_rewards("alice", 0).reward
        assert summary["voting_power"] == 1_000_000
        assert summary["custody_balance"] == custody.balance_of("alice")

    def test_stats(self, service):
        service.open_position("alice", 1_000, 1)
        stats = service.stats()
        assert stats.total_staked == 1_000
        assert stats.rewards_available == 1_000_000
        assert stats.custody_balance == 1_001_000


class TestConcurrency:
    def test_other_thread_waits_instead_of_failing(self, service, custody, clock):
        custody.mint("bob", 1_000_000)
        service.open_position("alice", 1_000_000, 12)
        clock.advance(WEEK_SECONDS)
        errors = []
        blocked = []

        def open_for_bob():
            try:
                service.open_position("bob", 200_000, 12)
            except StakingError as e:
                errors.append(e.code)

        worker = threading.Thread(target=open_for_bob)

        def during_payout(recipient, amount):
            worker.start()
            worker.join(timeout=0.2)
            blocked.append(worker.is_alive())

        custody.on_transfer_out.append(during_payout)
        service.claim("alice", 0)
        custody.on_transfer_out.clear()
        worker.join(timeout=5)

        assert blocked == [True]
        assert errors == []
        assert service.get_position("bob", 0).principal == 200_000
        assert service.state.total_staked == 1_200_000

    def test_same_thread_reentry_still_rejected(self, service, custody, clock):
        service.open_position("alice", 1_000_000, 12)
        clock.advance(WEEK_SECONDS)
        errors = []

        def reenter(recipient, amount):
            try:
                service.open_position("alice", 1_000, 12)
            except ReentrancyError as e:
                errors.append(e.code)

        custody.on_transfer_out.append(reenter)
        service.claim("alice", 0)
        custody.on_transfer_out.clear()

        assert errors == ["reentrant_call"]
        assert service.list_positions("alice")[0].position_id == 0
        assert len(service.list_positions("alice")) == 1
