from db.session import Base, engine
# Register every model on Base.metadata before create_all
from db.models import user, subscription, coupon, payment, referral, wallet, settlement, video  # noqa: F401
import logging

logger = logging.getLogger(__name__)

async def initialize_database():
    """Create tables only. Schema changes beyond that are applied out of band."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

async def drop_database():
    """Drop every table; used by the test suite between cases."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
