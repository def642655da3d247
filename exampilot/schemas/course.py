from pydantic import Field, field_validator
from datetime import datetime
from typing import Literal, Optional

from exampilot.schemas import CamelModel

AnswerOption = Literal['A', 'B', 'C', 'D']
Difficulty = Literal['easy', 'medium', 'hard']


def _upper_option(value):
    if isinstance(value, str):
        return value.strip().upper()
    return value


class CourseCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    is_active: bool = True


class CourseUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class Course(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    duration_minutes: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuestionCreate(CamelModel):
    course_id: str = Field(min_length=1)
    question_text: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    option_c: str = Field(min_length=1)
    option_d: str = Field(min_length=1)
    correct_answer: AnswerOption
    difficulty: Difficulty = 'medium'

    normalize_answer = field_validator('correct_answer', mode='before')(_upper_option)


class QuestionUpdate(CamelModel):
    course_id: Optional[str] = Field(default=None, min_length=1)
    question_text: Optional[str] = Field(default=None, min_length=1)
    option_a: Optional[str] = Field(default=None, min_length=1)
    option_b: Optional[str] = Field(default=None, min_length=1)
    option_c: Optional[str] = Field(default=None, min_length=1)
    option_d: Optional[str] = Field(default=None, min_length=1)
    correct_answer: Optional[AnswerOption] = None
    difficulty: Optional[Difficulty] = None

    normalize_answer = field_validator('correct_answer', mode='before')(_upper_option)


class Question(CamelModel):
    """管理者向け（正解を含む）"""
    id: str
    course_id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: AnswerOption
    difficulty: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    course_name: Optional[str] = None


class StudentQuestion(CamelModel):
    """受験者向け（正解・難易度を含まない）"""
    id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
