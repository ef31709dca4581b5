import uuid
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from models.session import QuizSession
from schemas.session import ResumeState, RetryOutcome
from services.progress_service import ProgressService
from services.selection import SelectionMode
from services.session_service import SessionService
from core.config import settings
from core.logger import logger

BOOKMARKED_MODE = "bookmarked"
NAME_MAX_LENGTH = QuizSession.__table__.c.name.type.length


class RetryService:
    """Builds follow-up sessions out of an existing session's results."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionService(db)
        self.progress = ProgressService(db)

    async def retry_incorrect(self, session_id: int, owner_id: int) -> RetryOutcome:
        session = await self.sessions.get_by_id(session_id)
        question_ids = await self.progress.incorrect_question_ids(session_id)
        return await self._derive(session, question_ids, "retry", SelectionMode.PREVIOUSLY_INCORRECT.value, owner_id)

    async def retry_bookmarked(self, session_id: int, owner_id: int) -> RetryOutcome:
        session = await self.sessions.get_by_id(session_id)
        question_ids = await self.progress.bookmarked_question_ids(session_id)
        return await self._derive(session, question_ids, "bm", BOOKMARKED_MODE, owner_id)

    async def resume(self, token: str) -> ResumeState:
        """Work out where a session left off. Nothing is written."""
        session = await self.sessions.get_by_token(token)
        index = await self.progress.current_question_index(session.id)
        total = await self.progress.total_questions(session.id)
        logger.info("Resuming session", session_id=session.id, question_index=index)
        return ResumeState(
            session_id=session.id,
            quiz_id=session.quiz_id,
            question_index=index,
            total=total,
            is_resuming=index > 0,
        )

    async def _derive(self, session, question_ids: List[int], tag: str, mode: str, owner_id: int) -> RetryOutcome:
        if not question_ids:
            logger.info("Nothing to retry", session_id=session.id, mode=mode)
            return RetryOutcome(created=False)

        name = self._derived_name(session.name, tag)
        created = await self.sessions.create_session_with_questions(
            name, session.quiz_id, question_ids, mode, owner_id
        )
        logger.info(
            "Retry session created",
            from_session_id=session.id,
            session_id=created.session_id,
            questions=len(question_ids),
            mode=mode,
        )
        return RetryOutcome(created=True, session=created, question_ids=question_ids)

    @staticmethod
    def _derived_name(base: str, tag: str) -> str:
        # Trim the base, never the suffix, to fit the name column
        ending = f"-{tag}-{uuid.uuid4().hex[:settings.RETRY_SUFFIX_LENGTH]}"
        return base[:NAME_MAX_LENGTH - len(ending)] + ending
