"""
コース・問題管理クラス
コースの論理削除、問題のCRUD、受験者向けの正解を除いた問題取得などを管理
"""

import logging

from exampilot.core.database import generate_id, utcnow
from exampilot.core.errors import NotFound
from exampilot.schemas.course import Course, Question, StudentQuestion

logger = logging.getLogger(__name__)

COURSE_COLUMNS = ('name', 'description', 'duration_minutes', 'is_active')
QUESTION_COLUMNS = (
    'course_id', 'question_text', 'option_a', 'option_b', 'option_c', 'option_d',
    'correct_answer', 'difficulty',
)


class CourseStore:
    """コースと問題の管理クラス"""

    def __init__(self, db_manager):
        self.db_manager = db_manager

    def _executor(self, executor):
        # トランザクション中はそのハンドルを使う
        return executor or self.db_manager

    # --- コース ---

    def list_active_courses(self):
        rows = self.db_manager.execute_query(
            'SELECT * FROM courses WHERE is_active = ? ORDER BY created_at', (True,)
        )
        return [Course.model_validate(row) for row in rows]

    def list_courses(self, include_inactive=True):
        if not include_inactive:
            return self.list_active_courses()
        rows = self.db_manager.execute_query('SELECT * FROM courses ORDER BY created_at')
        return [Course.model_validate(row) for row in rows]

    def get_course(self, course_id):
        rows = self.db_manager.execute_query(
            'SELECT * FROM courses WHERE id = ?', (course_id,)
        )
        return Course.model_validate(rows[0]) if rows else None

    def require_course(self, course_id):
        course = self.get_course(course_id)
        if not course:
            raise NotFound('Course not found')
        return course

    def create_course(self, data):
        course_id = generate_id()
        now = utcnow()
        self.db_manager.execute_query(
            '''INSERT INTO courses
               (id, name, description, duration_minutes, is_active, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (course_id, data.name, data.description, data.duration_minutes,
             data.is_active, now, now)
        )
        logger.info(f"Course created: {course_id} ({data.name})")
        return self.get_course(course_id)

    def update_course(self, course_id, data):
        self.require_course(course_id)
        updates = data.model_dump(exclude_unset=True)
        self._update('courses', course_id, updates, COURSE_COLUMNS)
        return self.get_course(course_id)

    def delete_course(self, course_id):
        """コースの論理削除（is_active=False）"""
        self.require_course(course_id)
        self.db_manager.execute_query(
            'UPDATE courses SET is_active = ?, updated_at = ? WHERE id = ?',
            (False, utcnow(), course_id)
        )
        logger.info(f"Course deactivated: {course_id}")

    # --- 問題 ---

    def get_question(self, question_id, executor=None):
        rows = self._executor(executor).execute_query(
            'SELECT * FROM questions WHERE id = ?', (question_id,)
        )
        return Question.model_validate(rows[0]) if rows else None

    def get_questions_by_course(self, course_id, executor=None):
        """コースの全問題（管理者向け、正解を含む）"""
        rows = self._executor(executor).execute_query(
            'SELECT * FROM questions WHERE course_id = ? ORDER BY created_at, id', (course_id,)
        )
        return [Question.model_validate(row) for row in rows]

    def get_student_questions(self, course_id):
        """受験者向けの問題一覧（正解を除く）"""
        return [
            StudentQuestion.model_validate(question.model_dump())
            for question in self.get_questions_by_course(course_id)
        ]

    def list_all_questions(self):
        rows = self.db_manager.execute_query('''
            SELECT q.*, c.name AS course_name
            FROM questions q
            INNER JOIN courses c ON q.course_id = c.id
            ORDER BY c.name, q.created_at
        ''')
        return [Question.model_validate(row) for row in rows]

    def create_question(self, data):
        self.require_course(data.course_id)
        question_id = generate_id()
        now = utcnow()
        self.db_manager.execute_query(
            '''INSERT INTO questions
               (id, course_id, question_text, option_a, option_b, option_c, option_d,
                correct_answer, difficulty, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
            (question_id, data.course_id, data.question_text, data.option_a, data.option_b,
             data.option_c, data.option_d, data.correct_answer, data.difficulty, now, now)
        )
        return self.get_question(question_id)

    def update_question(self, question_id, data):
        if not self.get_question(question_id):
            raise NotFound('Question not found')
        updates = data.model_dump(exclude_unset=True)
        if updates.get('course_id'):
            self.require_course(updates['course_id'])
        self._update('questions', question_id, updates, QUESTION_COLUMNS)
        return self.get_question(question_id)

    def delete_question(self, question_id):
        """問題の物理削除（解答履歴は残す）"""
        if not self.get_question(question_id):
            raise NotFound('Question not found')
        self.db_manager.execute_query('DELETE FROM questions WHERE id = ?', (question_id,))
        logger.info(f"Question deleted: {question_id}")

    def get_total_questions(self):
        result = self.db_manager.execute_query('SELECT COUNT(*) AS count FROM questions')
        return result[0]['count'] if result else 0

    def _update(self, table, row_id, updates, allowed_columns):
        # None は「変更なし」として扱う（description のみ空にできる）
        fields = {
            key: value for key, value in updates.items()
            if key in allowed_columns and (value is not None or key == 'description')
        }
        if not fields:
            return
        assignments = ', '.join(f'{column} = ?' for column in fields)
        self.db_manager.execute_query(
            f'UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?',
            tuple(fields.values()) + (utcnow(), row_id)
        )
