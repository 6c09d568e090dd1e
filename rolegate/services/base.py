"""
Service helpers

Public service operations raise RBACError internally and hand a result
model back to the caller. `returns_result` does the translation so each
operation body can read top to bottom without try/except noise.

Raw error detail (SQL errors, tracebacks) goes to the log only.
"""
import functools

from sqlalchemy.exc import SQLAlchemyError

from rolegate.core.exceptions import PersistenceFailed, RBACError
from rolegate.utils.logging import get_logger

logger = get_logger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


def returns_result(result_cls, operation: str):
    """
    Convert exceptions raised by a service function into `result_cls`.

    The wrapped function must take the SQLAlchemy session as its first
    argument; it is rolled back on database and unexpected errors.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(db, *args, **kwargs):
            try:
                return func(db, *args, **kwargs)
            except RBACError as exc:
                return result_cls(success=False, message=exc.message, error=exc.code, **exc.details)
            except SQLAlchemyError:
                db.rollback()
                logger.exception(f"Database error during {operation}")
                failure = PersistenceFailed()
                return result_cls(success=False, message=failure.message, error=failure.code)
            except Exception:
                db.rollback()
                logger.exception(f"Unexpected error during {operation}")
                return result_cls(success=False, message=UNEXPECTED_ERROR_MESSAGE, error="internal_error")
        return wrapper
    return decorator


def pluralize(count: int, singular: str, plural: str = None) -> str:
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"
