"""Notification sink.

Notifications describe work that is already committed, so they are written in
their own transaction and a failure to write them is logged, never raised.
"""

from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.logging import get_logger
from . import crud
from .models import Notification

logger = get_logger(__name__)


async def dispatch_notifications(
    db: AsyncSession, notifications: Sequence[Notification]
) -> bool:
    """Persist notifications after the operation they describe has committed.

    Returns:
        True when every notification was stored
    """
    if not notifications:
        return True
    try:
        await crud.add_notifications(db, notifications)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            f"Failed to store {len(notifications)} notification(s): {e}",
            extra={
                "tenant_ids": [n.tenant_id for n in notifications],
                "error_type": type(e).__name__,
            },
        )
        return False

    logger.debug(
        f"Stored {len(notifications)} notification(s)",
        extra={"notification_ids": [n.id for n in notifications]},
    )
    return True
