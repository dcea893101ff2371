"""Repository helpers - wraps database operations into Results"""

import logging
from functools import wraps
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ErrorCode, normalize_db_error
from .result import Result

logger = logging.getLogger(__name__)


def repository_operation(
    action: str,
    messages: Optional[dict[ErrorCode, str]] = None,
    unique_messages: Optional[dict[str, str]] = None,
) -> Callable:
    """
    Decorate a repository method whose first argument is the Session.

    Database errors roll the session back and come out as Result.fail with a
    normalized error. Anything that is not a database error propagates.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(db: Session, *args, **kwargs) -> Result:
            try:
                return func(db, *args, **kwargs)
            except SQLAlchemyError as e:
                db.rollback()
                error = normalize_db_error(e, messages=messages, unique_messages=unique_messages)
                logger.error(f"❌ {action} failed [{error.code.value}]: {error.details}")
                return Result.from_error(error)

        return wrapper

    return decorator


def apply_updates(instance, updates: dict) -> None:
    """Set whitelisted attributes on a model instance"""
    for key, value in updates.items():
        if hasattr(instance, key):
            setattr(instance, key, value)
