"""SQLAlchemy declarative base and ledger tables.

Token amounts and points are arbitrary-precision integers, so they are stored
as decimal text rather than SQL integers.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""


class LedgerTotalsModel(Base):
    """전역 원장 카운터 (단일 행, id=1)"""

    __tablename__ = "ledger_totals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    program_start: Mapped[int] = mapped_column(Integer, nullable=False)
    total_staked: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    total_rewards_added: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    total_rewards_distributed: Mapped[str] = mapped_column(
        Text, nullable=False, default="0"
    )
    total_rewards_recovered: Mapped[str] = mapped_column(
        Text, nullable=False, default="0"
    )
    boosted_owner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successor: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class OwnerAccountModel(Base):
    """소유자 계정: 포지션 id 목록, 원금 합계, id 카운터"""

    __tablename__ = "owner_accounts"

    owner: Mapped[str] = mapped_column(String, primary_key=True)
    position_ids: Mapped[list] = mapped_column(JSON, default=list)
    total_principal: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    next_position_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_boosted: Mapped[bool] = mapped_column(Boolean, default=False)


class PositionModel(Base):
    """활성 포지션 (Closed 포지션은 행 삭제)"""

    __tablename__ = "positions"
    __table_args__ = (UniqueConstraint("owner", "position_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String, nullable=False, index=True)
    position_id: Mapped[int] = mapped_column(Integer, nullable=False)

    principal: Mapped[str] = mapped_column(Text, nullable=False)
    lock_start: Mapped[int] = mapped_column(Integer, nullable=False)
    lock_months: Mapped[int] = mapped_column(Integer, nullable=False)
    last_claim: Mapped[int] = mapped_column(Integer, nullable=False)
    last_settled: Mapped[int] = mapped_column(Integer, nullable=False)
    size_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    accrued_rewards: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    points: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    points_checkpoint: Mapped[int] = mapped_column(Integer, nullable=False)
    is_boosted: Mapped[bool] = mapped_column(Boolean, default=False)


class LedgerEventModel(Base):
    """감사 로그: EventBus로 발행된 원장 이벤트 (append-only)"""

    __tablename__ = "ledger_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    source: Mapped[str] = mapped_column(String, nullable=False)
    owner: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    position_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
