import random
import secrets
import time
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from models.quiz import Quiz
from models.session import QuizSession, SessionQuestion, UserAnswer
from schemas.session import CreatedSession
from services.pool_service import QuestionPoolService
from services.selection import QuestionSelector, clamp_question_count, parse_selection_mode
from core.exceptions import ConflictError, NotFoundError, storage_errors
from core.logger import logger

class SessionService:
    def __init__(self, db: AsyncSession, selector: Optional[QuestionSelector] = None):
        self.db = db
        self.selector = selector or QuestionSelector(QuestionPoolService(db))

    async def name_exists(self, name: str, quiz_id: int) -> bool:
        async with storage_errors(self.db, "check session name", quiz_id=quiz_id):
            result = await self.db.execute(
                select(func.count(QuizSession.id)).filter(QuizSession.name == name, QuizSession.quiz_id == quiz_id)
            )
            return result.scalar() > 0

    async def _ensure_quiz_exists(self, quiz_id: int):
        async with storage_errors(self.db, "check quiz", quiz_id=quiz_id):
            result = await self.db.execute(select(Quiz.id).filter(Quiz.id == quiz_id))
            found = result.scalar_one_or_none()
        if found is None:
            raise NotFoundError("quiz not found", quiz_id=quiz_id)

    async def _ensure_name_free(self, name: str, quiz_id: int):
        if await self.name_exists(name, quiz_id):
            logger.warning("Duplicate session name attempted", name=name, quiz_id=quiz_id)
            raise ConflictError(
                "session name is already in use for this quiz", name=name, quiz_id=quiz_id
            )

    async def create_session(
        self,
        name: str,
        quiz_id: int,
        question_count: int,
        selection_mode,
        owner_id: int
    ) -> CreatedSession:
        await self._ensure_quiz_exists(quiz_id)
        # Pre-check only, the (name, quiz_id) constraint is authoritative
        await self._ensure_name_free(name, quiz_id)

        mode = parse_selection_mode(selection_mode)
        question_count = clamp_question_count(question_count)
        shuffle_seed = random.getrandbits(32)

        question_ids = await self.selector.select(quiz_id, question_count, mode, shuffle_seed)

        session = QuizSession(
            name=name,
            session_token=self._new_token(),
            quiz_id=quiz_id,
            owner_id=owner_id,
            shuffle_seed=shuffle_seed,
            question_count=question_count,
            selection_mode=mode.value,
        )
        session = await self.commit_session_creation(session, question_ids)
        logger.info(
            "Quiz session created",
            quiz_id=quiz_id,
            session_id=session.id,
            questions=len(question_ids),
            mode=mode.value,
        )
        return self._created(session)

    async def create_session_with_questions(
        self,
        name: str,
        quiz_id: int,
        question_ids: Iterable[int],
        selection_mode: str,
        owner_id: int
    ) -> CreatedSession:
        await self._ensure_quiz_exists(quiz_id)
        await self._ensure_name_free(name, quiz_id)

        # dict keeps first-occurrence order
        unique_ids = list(dict.fromkeys(question_ids))

        session = QuizSession(
            name=name,
            session_token=self._new_token(),
            quiz_id=quiz_id,
            owner_id=owner_id,
            shuffle_seed=0,
            question_count=len(unique_ids),
            selection_mode=str(getattr(selection_mode, "value", selection_mode)),
        )
        session = await self.commit_session_creation(session, unique_ids)
        logger.info(
            "Quiz session created with specific questions",
            quiz_id=quiz_id,
            session_id=session.id,
            questions=len(unique_ids),
            mode=session.selection_mode,
        )
        return self._created(session)

    async def commit_session_creation(self, session: QuizSession, question_ids: List[int]) -> QuizSession:
        """Insert the session and its ordered assignments in a single transaction."""
        name, quiz_id = session.name, session.quiz_id
        async with storage_errors(self.db, "create session", quiz_id=quiz_id, name=name):
            try:
                self.db.add(session)
                await self.db.flush()
                self.db.add_all([
                    SessionQuestion(session_id=session.id, question_id=question_id, question_number=idx)
                    for idx, question_id in enumerate(question_ids)
                ])
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if await self.name_exists(name, quiz_id):
                    logger.warning("Session name taken concurrently", name=name, quiz_id=quiz_id)
                    raise ConflictError(
                        "session name is already in use for this quiz", name=name, quiz_id=quiz_id
                    ) from e
                raise
        await self.db.refresh(session)
        return session

    async def get_by_token(self, token: str) -> QuizSession:
        async with storage_errors(self.db, "load session by token"):
            result = await self.db.execute(select(QuizSession).filter(QuizSession.session_token == token))
            session = result.scalar_one_or_none()
        if not session:
            raise NotFoundError("session not found for token")
        return session

    async def get_by_id(self, session_id: int) -> QuizSession:
        async with storage_errors(self.db, "load session", session_id=session_id):
            result = await self.db.execute(select(QuizSession).filter(QuizSession.id == session_id))
            session = result.scalar_one_or_none()
        if not session:
            raise NotFoundError("session not found", session_id=session_id)
        return session

    async def verify_owner(self, session_id: int, user_id: int) -> bool:
        async with storage_errors(self.db, "verify session owner", session_id=session_id):
            result = await self.db.execute(
                select(QuizSession.id).filter(QuizSession.id == session_id, QuizSession.owner_id == user_id)
            )
            return result.scalar_one_or_none() is not None

    async def rename(self, session_id: int, new_name: str, quiz_id: int):
        await self._ensure_name_free(new_name, quiz_id)
        session = await self.get_by_id(session_id)

        async with storage_errors(self.db, "rename session", session_id=session_id):
            try:
                session.name = new_name
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ConflictError(
                    "session name is already in use for this quiz", name=new_name, quiz_id=quiz_id
                ) from e
        logger.info("Session renamed", session_id=session_id, name=new_name)

    async def delete(self, session_id: int):
        await self.get_by_id(session_id)

        async with storage_errors(self.db, "delete session", session_id=session_id):
            # Children first
            await self.db.execute(delete(UserAnswer).where(UserAnswer.session_id == session_id))
            await self.db.execute(delete(SessionQuestion).where(SessionQuestion.session_id == session_id))
            await self.db.execute(delete(QuizSession).where(QuizSession.id == session_id))
            await self.db.commit()
        logger.info("Session deleted", session_id=session_id)

    async def count_sessions(self, quiz_id: int) -> int:
        async with storage_errors(self.db, "count sessions", quiz_id=quiz_id):
            result = await self.db.execute(select(func.count(QuizSession.id)).filter(QuizSession.quiz_id == quiz_id))
            return result.scalar()

    async def find_incomplete_session(self, name: str, quiz_id: int) -> Optional[QuizSession]:
        """Return the named session of a quiz if it still has unanswered questions."""
        total = func.count(SessionQuestion.id)
        answered = func.count(SessionQuestion.is_correct)
        async with storage_errors(self.db, "find incomplete session", quiz_id=quiz_id):
            result = await self.db.execute(
                select(QuizSession)
                .outerjoin(SessionQuestion, SessionQuestion.session_id == QuizSession.id)
                .filter(QuizSession.name == name, QuizSession.quiz_id == quiz_id)
                .group_by(QuizSession.id)
                .having(answered < total)
                .order_by(QuizSession.id.desc())
            )
            session = result.scalars().first()

        if session:
            logger.info("Found incomplete session", session_id=session.id, name=name)
        else:
            logger.info("No incomplete session found", name=name, quiz_id=quiz_id)
        return session

    @staticmethod
    def _new_token() -> str:
        # 48-bit millisecond timestamp, then 80 random bits
        return f"{time.time_ns() // 1_000_000:012x}{secrets.token_hex(10)}"

    @staticmethod
    def _created(session: QuizSession) -> CreatedSession:
        return CreatedSession(
            session_id=session.id,
            token=session.session_token,
            name=session.name,
            question_count=session.question_count,
        )
