from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, case, not_
from models.quiz import Question
from models.session import SessionQuestion, UserAnswer
from schemas.session import AnswerResult, AnsweredSummary, SessionProgress
from services.pool_service import QuestionPoolService
from core.exceptions import InvalidInputError, NotFoundError, storage_errors
from core.logger import logger


def evaluate_answer(is_multiple_choice: bool, selected_ids: List[int], correct_ids: Iterable[int]) -> bool:
    """Multi-select needs the exact correct set, single-select a correct lone pick."""
    correct_ids = set(correct_ids)
    if is_multiple_choice:
        return sorted(set(selected_ids)) == sorted(correct_ids)
    return selected_ids[0] in correct_ids


class ProgressService:
    def __init__(self, db: AsyncSession, pool: Optional[QuestionPoolService] = None):
        self.db = db
        self.pool = pool or QuestionPoolService(db)

    async def current_question_index(self, session_id: int) -> int:
        """Number of answered questions, which is also the ordinal of the next one."""
        async with storage_errors(self.db, "load current question index", session_id=session_id):
            result = await self.db.execute(
                select(func.count(SessionQuestion.id)).filter(
                    SessionQuestion.session_id == session_id,
                    SessionQuestion.is_correct.is_not(None)
                )
            )
            return result.scalar()

    async def total_questions(self, session_id: int) -> int:
        async with storage_errors(self.db, "count session questions", session_id=session_id):
            result = await self.db.execute(
                select(func.count(SessionQuestion.id)).filter(SessionQuestion.session_id == session_id)
            )
            return result.scalar()

    async def question_id_at(self, session_id: int, question_number: int) -> int:
        async with storage_errors(self.db, "load question by number", session_id=session_id):
            result = await self.db.execute(
                select(SessionQuestion.question_id).filter(
                    SessionQuestion.session_id == session_id,
                    SessionQuestion.question_number == question_number
                )
            )
            question_id = result.scalar_one_or_none()
        if question_id is None:
            raise NotFoundError("no question at this position", session_id=session_id, question_number=question_number)
        return question_id

    async def _assignment(self, session_id: int, question_id: int):
        """Return the (question_number, is_correct, is_bookmarked) row of one assignment."""
        async with storage_errors(self.db, "load session question", session_id=session_id, question_id=question_id):
            result = await self.db.execute(
                select(
                    SessionQuestion.question_number,
                    SessionQuestion.is_correct,
                    SessionQuestion.is_bookmarked
                ).filter(
                    SessionQuestion.session_id == session_id,
                    SessionQuestion.question_id == question_id
                )
            )
            assignment = result.first()
        if assignment is None:
            raise NotFoundError("question is not part of this session", session_id=session_id, question_id=question_id)
        return assignment

    async def record_answer(
        self,
        session_id: int,
        question_id: int,
        selected_option_ids: Iterable[int],
        duration_ms: Optional[int] = None
    ) -> AnswerResult:
        selected_ids = list(selected_option_ids)
        if not selected_ids:
            raise InvalidInputError("no option selected", session_id=session_id, question_id=question_id)

        assignment = await self._assignment(session_id, question_id)
        is_multiple_choice, options = await self.pool.option_facts(question_id)

        unknown = [option_id for option_id in selected_ids if option_id not in options]
        if unknown:
            raise InvalidInputError(
                "selected options do not belong to the question", question_id=question_id, option_ids=unknown
            )
        if not is_multiple_choice and len(set(selected_ids)) != 1:
            raise InvalidInputError(
                "a single-select question takes exactly one option", question_id=question_id, option_ids=selected_ids
            )

        correct_ids = [option_id for option_id, is_answer in options.items() if is_answer]
        is_correct = evaluate_answer(is_multiple_choice, selected_ids, correct_ids)
        total = await self.total_questions(session_id)

        async with storage_errors(self.db, "save answer", session_id=session_id, question_id=question_id):
            self.db.add_all([
                UserAnswer(
                    session_id=session_id,
                    question_id=question_id,
                    option_id=option_id,
                    is_correct=is_correct,
                    duration_ms=duration_ms
                )
                for option_id in selected_ids
            ])
            # Repeated submissions overwrite the result, earlier answer rows stay
            await self.db.execute(
                update(SessionQuestion)
                .where(SessionQuestion.session_id == session_id, SessionQuestion.question_id == question_id)
                .values(is_correct=is_correct)
            )
            await self.db.commit()

        logger.info(
            "Answer recorded",
            session_id=session_id,
            question_id=question_id,
            is_correct=is_correct,
            multiple_choice=is_multiple_choice,
        )
        return AnswerResult(
            is_correct=is_correct,
            is_last=assignment.question_number + 1 == total,
            question_number=assignment.question_number,
        )

    async def is_answered(self, session_id: int, question_id: int) -> bool:
        assignment = await self._assignment(session_id, question_id)
        return assignment.is_correct is not None

    async def selected_option_ids(self, session_id: int, question_id: int) -> List[int]:
        async with storage_errors(self.db, "load selected options", session_id=session_id, question_id=question_id):
            result = await self.db.execute(
                select(UserAnswer.option_id)
                .filter(UserAnswer.session_id == session_id, UserAnswer.question_id == question_id)
                .order_by(UserAnswer.id)
            )
            return list(dict.fromkeys(result.scalars().all()))

    async def correct_answer_count(self, session_id: int) -> int:
        async with storage_errors(self.db, "count correct answers", session_id=session_id):
            result = await self.db.execute(
                select(func.count(SessionQuestion.id)).filter(
                    SessionQuestion.session_id == session_id,
                    SessionQuestion.is_correct == True
                )
            )
            return result.scalar()

    async def incorrect_question_ids(self, session_id: int) -> List[int]:
        async with storage_errors(self.db, "load incorrect questions", session_id=session_id):
            result = await self.db.execute(
                select(SessionQuestion.question_id)
                .filter(SessionQuestion.session_id == session_id, SessionQuestion.is_correct == False)
                .order_by(SessionQuestion.question_number)
            )
            return list(dict.fromkeys(result.scalars().all()))

    async def bookmarked_question_ids(self, session_id: int) -> List[int]:
        async with storage_errors(self.db, "load bookmarked questions", session_id=session_id):
            result = await self.db.execute(
                select(SessionQuestion.question_id)
                .filter(SessionQuestion.session_id == session_id, SessionQuestion.is_bookmarked == True)
                .order_by(SessionQuestion.question_number)
            )
            return list(dict.fromkeys(result.scalars().all()))

    async def answered_summaries(self, session_id: int) -> List[AnsweredSummary]:
        async with storage_errors(self.db, "load answered questions", session_id=session_id):
            result = await self.db.execute(
                select(
                    Question.question_text,
                    SessionQuestion.question_number,
                    SessionQuestion.is_correct,
                    SessionQuestion.is_bookmarked
                )
                .join(Question, Question.id == SessionQuestion.question_id)
                .filter(SessionQuestion.session_id == session_id, SessionQuestion.is_correct.is_not(None))
                .order_by(SessionQuestion.question_number)
            )
            rows = result.all()
        return [
            AnsweredSummary(
                question_text=text,
                question_number=number,
                is_correct=is_correct,
                is_bookmarked=is_bookmarked
            )
            for text, number, is_correct, is_bookmarked in rows
        ]

    async def toggle_bookmark(self, session_id: int, question_id: int) -> bool:
        await self._assignment(session_id, question_id)
        async with storage_errors(self.db, "toggle bookmark", session_id=session_id, question_id=question_id):
            await self.db.execute(
                update(SessionQuestion)
                .where(SessionQuestion.session_id == session_id, SessionQuestion.question_id == question_id)
                .values(is_bookmarked=not_(SessionQuestion.is_bookmarked))
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()

        bookmarked = await self.is_bookmarked(session_id, question_id)
        logger.info("Bookmark toggled", session_id=session_id, question_id=question_id, bookmarked=bookmarked)
        return bookmarked

    async def is_bookmarked(self, session_id: int, question_id: int) -> bool:
        assignment = await self._assignment(session_id, question_id)
        return bool(assignment.is_bookmarked)

    async def session_progress(self, session_id: int) -> SessionProgress:
        async with storage_errors(self.db, "load session progress", session_id=session_id):
            result = await self.db.execute(
                select(
                    func.count(SessionQuestion.id),
                    func.count(SessionQuestion.is_correct),
                    func.coalesce(func.sum(case((SessionQuestion.is_correct == True, 1), else_=0)), 0)
                ).filter(SessionQuestion.session_id == session_id)
            )
            total, answered, correct = result.one()
        return SessionProgress(total=total, answered=answered, correct=int(correct))
