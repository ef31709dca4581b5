from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from services.selection import SelectionMode, clamp_question_count, parse_selection_mode


class StartSessionRequest(BaseModel):
    """Body of a "start a new session" request."""
    name: str = Field(..., min_length=1, max_length=255)
    question_count: int = Field(10, description="Clamped to the configured range")
    selection_mode: SelectionMode = SelectionMode.RANDOM

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("session name must not be blank")
        return value

    @field_validator("question_count")
    @classmethod
    def clamp_count(cls, value: int) -> int:
        return clamp_question_count(value)

    @field_validator("selection_mode", mode="before")
    @classmethod
    def map_mode(cls, value):
        return parse_selection_mode(value)


class CreatedSession(BaseModel):
    session_id: int
    token: str
    name: str
    question_count: int


class AnswerResult(BaseModel):
    is_correct: bool
    is_last: bool
    question_number: int


class AnsweredSummary(BaseModel):
    question_text: str
    question_number: int
    is_correct: bool
    is_bookmarked: bool


class SessionProgress(BaseModel):
    total: int
    answered: int
    correct: int

    @property
    def is_complete(self) -> bool:
        # A session without questions has nothing left to answer
        return self.answered >= self.total

    @property
    def score_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.correct * 100.0 / self.total, 1)


class RetryOutcome(BaseModel):
    created: bool
    session: Optional[CreatedSession] = None
    question_ids: List[int] = Field(default_factory=list)


class ResumeState(BaseModel):
    session_id: int
    quiz_id: int
    question_index: int
    total: int
    is_resuming: bool

    @property
    def is_complete(self) -> bool:
        return self.question_index >= self.total
