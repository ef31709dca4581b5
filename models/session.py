from sqlalchemy import Column, Integer, BigInteger, String, Boolean, ForeignKey, DateTime, UniqueConstraint, Index, false, func
from models.base import Base, TimestampMixin

class QuizSession(Base, TimestampMixin):
    __tablename__ = "quiz_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    session_token = Column(String(64), unique=True, index=True, nullable=False)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    # Kept for reproducing a selection, not read back by the engine
    shuffle_seed = Column(BigInteger, default=0, nullable=False)
    question_count = Column(Integer, nullable=False)
    selection_mode = Column(String(32), default="unanswered", nullable=False)

    __table_args__ = (UniqueConstraint("name", "quiz_id", name="uq_quiz_sessions_name_quiz"),)


class SessionQuestion(Base):
    __tablename__ = "session_questions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("quiz_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    question_number = Column(Integer, nullable=False)

    # NULL until answered
    is_correct = Column(Boolean, nullable=True)
    is_bookmarked = Column(Boolean, default=False, server_default=false(), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "question_number", name="uq_session_questions_number"),
    )


class UserAnswer(Base):
    __tablename__ = "user_answers"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("quiz_sessions.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_id = Column(Integer, ForeignKey("options.id", ondelete="CASCADE"), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

Index("idx_user_answers_session_question", UserAnswer.session_id, UserAnswer.question_id)
