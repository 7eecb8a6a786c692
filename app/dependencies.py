import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session
from app.services.request import BloodRequestService
from app.services.stats_service import DonationStatsService

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Commits whatever the handler left open and rolls back on failure.
    """
    session = None
    try:
        session = async_session()
        logger.debug("Database session created")

        yield session

        if session.in_transaction():
            await session.commit()
            logger.debug("Database transaction committed")

    except HTTPException:
        if session and session.in_transaction():
            await session.rollback()
            logger.debug("Database transaction rolled back due to HTTPException")
        raise

    except SQLAlchemyError as e:
        logger.error(f"Database error in get_db: {type(e).__name__}: {e}")
        if session and session.in_transaction():
            await session.rollback()
        raise

    except Exception as e:
        logger.error(f"Unexpected error in get_db: {type(e).__name__}: {e}")
        if session and session.in_transaction():
            await session.rollback()
        raise

    finally:
        if session:
            await session.close()
            logger.debug("Database session closed")


def get_request_service(
    db: AsyncSession = Depends(get_db),
) -> BloodRequestService:
    return BloodRequestService(db)


def get_stats_service(db: AsyncSession = Depends(get_db)) -> DonationStatsService:
    return DonationStatsService(db)
