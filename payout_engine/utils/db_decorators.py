"""
Database decorators for automatic error handling and rollback.

Provides decorators to automatically handle database errors and rollbacks
in async functions and service methods that use SQLAlchemy sessions.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Locate the session: ``session=`` kwarg, a positional arg, or ``self.session``."""
    session = kwargs.get("session")
    if session is not None:
        return session

    for arg in args:
        if isinstance(arg, AsyncSession):
            return arg

    if args:
        owned = getattr(args[0], "session", None)
        if isinstance(owned, AsyncSession):
            return owned

    return None


async def _rollback(session: AsyncSession, func_name: str, error: Exception) -> None:
    try:
        await session.rollback()
        logger.info(
            f"Rollback performed in {func_name} due to error: {type(error).__name__}"
        )
    except Exception as rollback_error:
        logger.error(
            f"Failed to rollback in {func_name}: {rollback_error}",
            exc_info=True,
        )


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that automatically rolls back the session on any exception.

    Usage:
        class DepositService:
            @with_rollback_on_error
            async def approve(self, deposit_id: int) -> Deposit:
                ...
                await self.session.commit()

    The session is taken from a ``session`` keyword argument, the first
    positional argument, or the ``session`` attribute of ``self``. The
    original exception is always re-raised.

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function with automatic rollback on error
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                f"but no session argument found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            await _rollback(session, func.__name__, e)
            raise

    return wrapper
