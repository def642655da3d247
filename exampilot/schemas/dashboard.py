from datetime import datetime
from typing import Optional

from exampilot.schemas import CamelModel


class AdminStats(CamelModel):
    """管理者ダッシュボードの集計"""
    total_students: int
    total_questions: int
    tests_today: int
    average_score: float


class RecentActivity(CamelModel):
    """最近の受験完了"""
    student_name: str
    course_name: str
    score: float
    completed_at: Optional[datetime] = None


class StudentResult(CamelModel):
    """学生×コースごとの成績"""
    student_id: str
    student_name: str
    email: str
    course_name: str
    score: float
    attempts: int
    last_test: Optional[datetime] = None
