"""
管理者向けの集計
"""

import csv
import io
import logging
from datetime import datetime, time, timezone

from exampilot.schemas.dashboard import AdminStats, RecentActivity, StudentResult

logger = logging.getLogger(__name__)

CSV_HEADER = ['Student ID', 'Student Name', 'Email', 'Course', 'Score', 'Attempts', 'Last Test']


def start_of_today():
    """当日0時（UTC）"""
    return datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)


class ReportManager:
    """ダッシュボード統計・成績一覧"""

    def __init__(self, db_manager):
        self.db_manager = db_manager

    def _count(self, query, params=None):
        result = self.db_manager.execute_query(query, params)
        return result[0]['count'] if result else 0

    def get_stats(self):
        total_students = self._count('SELECT COUNT(*) AS count FROM students')
        total_questions = self._count('SELECT COUNT(*) AS count FROM questions')
        tests_today = self._count(
            'SELECT COUNT(*) AS count FROM test_attempts WHERE is_completed = ? AND completed_at >= ?',
            (True, start_of_today())
        )
        avg = self.db_manager.execute_query(
            'SELECT AVG(score) AS avg_score FROM test_attempts WHERE is_completed = ?', (True,)
        )
        average_score = avg[0]['avg_score'] if avg and avg[0]['avg_score'] is not None else 0

        return AdminStats(
            total_students=total_students,
            total_questions=total_questions,
            tests_today=tests_today,
            average_score=round(float(average_score), 2),
        )

    def get_recent_activity(self, limit=10):
        rows = self.db_manager.execute_query('''
            SELECT s.first_name || ' ' || s.last_name AS student_name,
                   c.name AS course_name,
                   COALESCE(ta.score, 0) AS score,
                   ta.completed_at
            FROM test_attempts ta
            INNER JOIN students s ON ta.student_id = s.id
            INNER JOIN courses c ON ta.course_id = c.id
            WHERE ta.is_completed = ?
            ORDER BY ta.completed_at DESC
            LIMIT ?
        ''', (True, limit))
        return [RecentActivity.model_validate(row) for row in rows]

    def get_student_results(self):
        """学生×コースごとの最高点・受験回数・最終受験日時"""
        rows = self.db_manager.execute_query('''
            SELECT s.student_id,
                   s.first_name || ' ' || s.last_name AS student_name,
                   s.email,
                   c.name AS course_name,
                   MAX(ta.score) AS score,
                   COUNT(ta.id) AS attempts,
                   MAX(ta.completed_at) AS last_test
            FROM test_attempts ta
            INNER JOIN students s ON ta.student_id = s.id
            INNER JOIN courses c ON ta.course_id = c.id
            WHERE ta.is_completed = ?
            GROUP BY s.id, c.id, s.student_id, s.first_name, s.last_name, s.email, c.name
            ORDER BY student_name, course_name
        ''', (True,))
        return [StudentResult.model_validate(row) for row in rows]

    def export_student_results_csv(self):
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADER)

        results = self.get_student_results()
        for result in results:
            writer.writerow([
                result.student_id,
                result.student_name,
                result.email,
                result.course_name,
                f'{result.score}%',
                result.attempts,
                result.last_test.isoformat() if result.last_test else '',
            ])

        logger.info(f"Student results exported: {len(results)} rows")
        return output.getvalue()
