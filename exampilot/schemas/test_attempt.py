from pydantic import Field, field_validator
from datetime import datetime
from typing import List, Optional

from exampilot.schemas import CamelModel
from exampilot.schemas.course import AnswerOption


def _zero_if_none(value):
    # timeSpent: null は未計測として0秒扱い
    return 0 if value is None else value


class TestStart(CamelModel):
    course_id: str = Field(min_length=1)


class AnswerSubmit(CamelModel):
    """解答送信

    クライアントが isCorrect を送ってきても無視する（正誤はサーバー側で判定）。
    """
    test_attempt_id: str = Field(min_length=1)
    question_id: str = Field(min_length=1)
    selected_answer: AnswerOption
    time_spent: int = Field(default=0, ge=0)

    default_time_spent = field_validator('time_spent', mode='before')(_zero_if_none)

    @field_validator('selected_answer', mode='before')
    @classmethod
    def upper_selected_answer(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class TestComplete(CamelModel):
    test_attempt_id: str = Field(min_length=1)
    time_spent: int = Field(default=0, ge=0)

    default_time_spent = field_validator('time_spent', mode='before')(_zero_if_none)


class TestAttempt(CamelModel):
    id: str
    student_id: str
    course_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    score: Optional[float] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    time_spent: Optional[int] = None
    is_completed: bool = False
    course_name: Optional[str] = None


class TestAnswer(CamelModel):
    id: str
    test_attempt_id: str
    question_id: str
    selected_answer: AnswerOption
    is_correct: bool
    time_spent: int = 0
    answered_at: Optional[datetime] = None


class ReviewAnswer(TestAnswer):
    """結果確認用（問題文と正解を付与）"""
    question_text: str
    correct_answer: AnswerOption


class TestResult(CamelModel):
    test_attempt: TestAttempt
    answers: List[ReviewAnswer]
