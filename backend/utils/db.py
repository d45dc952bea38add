from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, DBAPIError
import logging

logger = logging.getLogger(__name__)


async def safe_commit(session, client_error_message: str = "Invalid request", server_error_message: str = "Internal server error"):
    """Commit, rolling back and mapping store errors to HTTP errors.

    Integrity and driver errors become 400 with client_error_message; anything else 500.
    """
    try:
        await session.commit()
    except (IntegrityError, DBAPIError) as e:
        await session.rollback()
        logger.warning(f"Commit rejected by database: {type(e).__name__}")
        raise HTTPException(status_code=400, detail=client_error_message) from e
    except Exception as e:
        await session.rollback()
        logger.error(f"Commit failed: {type(e).__name__}")
        raise HTTPException(status_code=500, detail=server_error_message) from e
