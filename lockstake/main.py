"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from lockstake.api.health import router as health_router
from lockstake.api.positions import router as positions_router
from lockstake.api.treasury import custody_router, router as treasury_router
from lockstake.config import settings
from lockstake.core.event_bus import EventBus
from lockstake.core.logging import get_logger, setup_logging
from lockstake.core.staking.access import AccessPolicy
from lockstake.core.staking.custody import InMemoryCustody
from lockstake.db.database import SessionLocal, engine as db_engine
from lockstake.db.models import Base
from lockstake.services.staking_service import (
    StakingService,
    build_parameter_snapshot,
)

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # DB 테이블 생성
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    # 외부 협력자: custody / 접근 제어
    custody = InMemoryCustody(holder=settings.CUSTODY_ADDRESS)
    access = AccessPolicy(
        admin=settings.ADMIN_ADDRESS, treasury=settings.TREASURY_ADDRESS
    )
    app.state.custody = custody

    # StakingService 초기화 (DB에 원장이 있으면 복원)
    logger.info("Initializing StakingService...")
    event_bus = EventBus()
    db_session = SessionLocal()
    staking_service = StakingService(
        db=db_session,
        event_bus=event_bus,
        custody=custody,
        access=access,
        # 연산마다 새 스냅샷 (설정 변경은 다음 정산 이후 구간에만 반영)
        parameters=lambda: build_parameter_snapshot(settings),
        program_start=settings.PROGRAM_START or None,
    )
    if settings.SUCCESSOR_ADDRESS and not staking_service.state.successor:
        staking_service.set_successor(settings.ADMIN_ADDRESS, settings.SUCCESSOR_ADDRESS)
    app.state.staking_service = staking_service
    app.state.event_bus = event_bus
    logger.info("StakingService initialized.")

    yield

    # 종료 시 정리
    logger.info("Shutting down...")
    db_session.close()


app = FastAPI(title="lockstake", lifespan=lifespan)

app.include_router(health_router)
app.include_router(positions_router)
app.include_router(treasury_router)
app.include_router(custody_router)
