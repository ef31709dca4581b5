from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from models.quiz import Quiz, Question, Option
from models.session import QuizSession, SessionQuestion, UserAnswer
from core.exceptions import InvalidInputError, NotFoundError, storage_errors
from core.logger import logger

class QuizService:
    """Stores a quiz together with its fixed question bank."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _build_question(raw: dict) -> Question:
        options = raw.get("options") or []
        if len(options) < 2:
            raise InvalidInputError("a question needs at least two options", question=raw.get("question"))
        if not any(option.get("is_answer") for option in options):
            raise InvalidInputError("a question needs at least one correct option", question=raw.get("question"))

        return Question(
            question_text=raw["question"],
            category=raw.get("category"),
            is_multiple_choice=bool(raw.get("is_multiple_choice", False)),
            options=[
                Option(
                    option_text=option["text"],
                    is_answer=bool(option.get("is_answer", False)),
                    explanation=option.get("explanation")
                )
                for option in options
            ]
        )

    async def save_quiz(self, owner_id: int, name: str, questions: List[dict]) -> Quiz:
        """
        Save a quiz and its questions in one commit.

        Each question is a dict: ``question``, optional ``category``,
        ``is_multiple_choice`` and ``options`` (dicts with ``text``,
        ``is_answer`` and optional ``explanation``).
        """
        quiz = Quiz(
            owner_id=owner_id,
            name=name,
            questions=[self._build_question(raw) for raw in questions]
        )
        async with storage_errors(self.db, "save quiz", owner_id=owner_id):
            self.db.add(quiz)
            await self.db.commit()
            await self.db.refresh(quiz)
        logger.info("Quiz saved", owner_id=owner_id, quiz_id=quiz.id, questions=len(questions))
        return quiz

    async def get_quiz(self, quiz_id: int) -> Quiz:
        async with storage_errors(self.db, "load quiz", quiz_id=quiz_id):
            result = await self.db.execute(select(Quiz).filter(Quiz.id == quiz_id))
            quiz = result.scalar_one_or_none()
        if not quiz:
            raise NotFoundError("quiz not found", quiz_id=quiz_id)
        return quiz

    async def get_owner_quizzes(self, owner_id: int) -> List[Quiz]:
        async with storage_errors(self.db, "load quizzes", owner_id=owner_id):
            result = await self.db.execute(
                select(Quiz).filter(Quiz.owner_id == owner_id).order_by(Quiz.created_at.desc())
            )
            return list(result.scalars().all())

    async def rename_quiz(self, quiz_id: int, owner_id: int, name: str) -> bool:
        async with storage_errors(self.db, "rename quiz", quiz_id=quiz_id):
            result = await self.db.execute(
                select(Quiz).filter(Quiz.id == quiz_id, Quiz.owner_id == owner_id)
            )
            quiz = result.scalar_one_or_none()
            if not quiz:
                return False
            quiz.name = name
            await self.db.commit()
        logger.info("Quiz renamed", quiz_id=quiz_id, owner_id=owner_id)
        return True

    async def delete_quiz(self, quiz_id: int, owner_id: int) -> bool:
        async with storage_errors(self.db, "delete quiz", quiz_id=quiz_id):
            result = await self.db.execute(
                select(Quiz.id).filter(Quiz.id == quiz_id, Quiz.owner_id == owner_id)
            )
            if result.scalar_one_or_none() is None:
                return False

            # Sessions and their rows go first to keep foreign keys satisfied
            session_ids = select(QuizSession.id).where(QuizSession.quiz_id == quiz_id)
            await self.db.execute(delete(UserAnswer).where(UserAnswer.session_id.in_(session_ids)))
            await self.db.execute(delete(SessionQuestion).where(SessionQuestion.session_id.in_(session_ids)))
            await self.db.execute(delete(QuizSession).where(QuizSession.quiz_id == quiz_id))

            question_ids = select(Question.id).where(Question.quiz_id == quiz_id)
            await self.db.execute(delete(Option).where(Option.question_id.in_(question_ids)))
            await self.db.execute(delete(Question).where(Question.quiz_id == quiz_id))
            await self.db.execute(delete(Quiz).where(Quiz.id == quiz_id))
            await self.db.commit()
        logger.info("Quiz deleted", quiz_id=quiz_id, owner_id=owner_id)
        return True

    async def questions_count(self, quiz_id: int) -> int:
        async with storage_errors(self.db, "count questions", quiz_id=quiz_id):
            result = await self.db.execute(select(func.count(Question.id)).filter(Question.quiz_id == quiz_id))
            return result.scalar()
