from typing import Dict, List, Set, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.quiz import Question, Option
from models.session import QuizSession, SessionQuestion
from services.selection import SelectionMode
from core.exceptions import NotFoundError, storage_errors

class QuestionPoolService:
    """Read-only queries over a quiz's question bank."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def all_question_ids(self, quiz_id: int) -> List[int]:
        async with storage_errors(self.db, "load question ids", quiz_id=quiz_id):
            result = await self.db.execute(
                select(Question.id).filter(Question.quiz_id == quiz_id).order_by(Question.id)
            )
            return list(result.scalars().all())

    async def never_assigned_question_ids(self, quiz_id: int) -> Set[int]:
        # Any session of the quiz counts, whoever owns it
        assigned = (
            select(SessionQuestion.question_id)
            .join(QuizSession, QuizSession.id == SessionQuestion.session_id)
            .filter(QuizSession.quiz_id == quiz_id)
        )
        async with storage_errors(self.db, "load never assigned questions", quiz_id=quiz_id):
            result = await self.db.execute(
                select(Question.id).filter(
                    Question.quiz_id == quiz_id,
                    Question.id.not_in(assigned)
                )
            )
            return set(result.scalars().all())

    async def previously_incorrect_question_ids(self, quiz_id: int) -> Set[int]:
        async with storage_errors(self.db, "load previously incorrect questions", quiz_id=quiz_id):
            result = await self.db.execute(
                select(SessionQuestion.question_id)
                .join(QuizSession, QuizSession.id == SessionQuestion.session_id)
                .filter(QuizSession.quiz_id == quiz_id, SessionQuestion.is_correct == False)
                .distinct()
            )
            return set(result.scalars().all())

    async def primary_pool(self, quiz_id: int, mode: SelectionMode) -> Set[int]:
        if mode == SelectionMode.NEVER_ASKED:
            return await self.never_assigned_question_ids(quiz_id)
        if mode == SelectionMode.PREVIOUSLY_INCORRECT:
            return await self.previously_incorrect_question_ids(quiz_id)
        return set(await self.all_question_ids(quiz_id))

    async def correct_option_ids(self, question_id: int) -> Set[int]:
        async with storage_errors(self.db, "load correct options", question_id=question_id):
            result = await self.db.execute(
                select(Option.id).filter(Option.question_id == question_id, Option.is_answer == True)
            )
            return set(result.scalars().all())

    async def option_facts(self, question_id: int) -> Tuple[bool, Dict[int, bool]]:
        """Return (is_multiple_choice, {option_id: is_answer}) for one question."""
        async with storage_errors(self.db, "load question options", question_id=question_id):
            result = await self.db.execute(
                select(Question.is_multiple_choice).filter(Question.id == question_id)
            )
            is_multiple_choice = result.scalar_one_or_none()
            if is_multiple_choice is None:
                raise NotFoundError("question not found", question_id=question_id)

            result = await self.db.execute(
                select(Option.id, Option.is_answer).filter(Option.question_id == question_id)
            )
            options = {option_id: bool(is_answer) for option_id, is_answer in result.all()}
        return bool(is_multiple_choice), options
