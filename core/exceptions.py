from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from core.logger import logger


class QuizDrillError(Exception):
    """Base class for every domain error raised by the services.

    Keyword arguments are kept as ``context`` so callers (and logs) can see
    which entity or operation the error is about.
    """

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(QuizDrillError):
    """A session, question or token lookup found nothing."""


class ConflictError(QuizDrillError):
    """A session name is already used by another session of the same quiz."""


class InvalidInputError(QuizDrillError):
    """The caller submitted something the services cannot evaluate."""


class InternalError(QuizDrillError):
    """Storage or transport failure."""


@asynccontextmanager
async def storage_errors(db, operation: str, **context):
    """Roll back and re-raise SQLAlchemy failures as InternalError."""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Storage operation failed", operation=operation, error=str(e), **context)
        raise InternalError(f"could not {operation}", operation=operation, **context) from e
