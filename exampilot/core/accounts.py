"""
アカウント管理（学生・管理者）
パスワードは werkzeug のハッシュで保存する
"""

import logging
from werkzeug.security import check_password_hash, generate_password_hash

from exampilot.core.database import generate_id, utcnow
from exampilot.core.errors import ValidationError
from exampilot.schemas.user import Admin, Student

logger = logging.getLogger(__name__)


class AccountManager:
    """学生・管理者アカウントの管理クラス"""

    def __init__(self, db_manager):
        self.db_manager = db_manager

    # --- 学生 ---

    def _get_student_row(self, column, value):
        rows = self.db_manager.execute_query(
            f'SELECT * FROM students WHERE {column} = ?', (value,)
        )
        return rows[0] if rows else None

    def get_student(self, student_pk):
        row = self._get_student_row('id', student_pk)
        return Student.model_validate(row) if row else None

    def get_student_by_email(self, email):
        row = self._get_student_row('email', email)
        return Student.model_validate(row) if row else None

    def register_student(self, data):
        """学生登録（メールアドレス・学籍番号の重複は不可）"""
        email = data.email.lower()
        if self._get_student_row('email', email):
            raise ValidationError('Student with this email already exists')
        if self._get_student_row('student_id', data.student_id):
            raise ValidationError('Student ID already exists')

        student_pk = generate_id()
        self.db_manager.execute_query(
            '''INSERT INTO students
               (id, student_id, email, password_hash, first_name, last_name, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (
                student_pk,
                data.student_id,
                email,
                generate_password_hash(data.password),
                data.first_name,
                data.last_name,
                utcnow(),
            )
        )
        logger.info(f"Student registered: {data.student_id}")
        return self.get_student(student_pk)

    def authenticate_student(self, email, password):
        row = self._get_student_row('email', email.lower())
        if row and check_password_hash(row['password_hash'], password):
            return Student.model_validate(row)
        return None

    # --- 管理者 ---

    def _get_admin_row(self, column, value):
        rows = self.db_manager.execute_query(
            f'SELECT * FROM admins WHERE {column} = ?', (value,)
        )
        return rows[0] if rows else None

    def get_admin(self, admin_pk):
        row = self._get_admin_row('id', admin_pk)
        return Admin.model_validate(row) if row else None

    def create_admin(self, data):
        if self._get_admin_row('admin_id', data.admin_id):
            raise ValidationError('Admin ID already exists')
        if self._get_admin_row('email', data.email.lower()):
            raise ValidationError('Admin with this email already exists')

        admin_pk = generate_id()
        self.db_manager.execute_query(
            '''INSERT INTO admins
               (id, admin_id, email, password_hash, first_name, last_name, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (
                admin_pk,
                data.admin_id,
                data.email.lower(),
                generate_password_hash(data.password),
                data.first_name,
                data.last_name,
                utcnow(),
            )
        )
        logger.info(f"Admin created: {data.admin_id}")
        return self.get_admin(admin_pk)

    def authenticate_admin(self, admin_id, password):
        row = self._get_admin_row('admin_id', admin_id)
        if row and check_password_hash(row['password_hash'], password):
            return Admin.model_validate(row)
        return None

    def ensure_default_admin(self, admin_id, password, email):
        """起動時の初期管理者を作成（既に存在する場合は何もしない）"""
        if self._get_admin_row('admin_id', admin_id):
            return False
        self.db_manager.execute_query(
            '''INSERT INTO admins
               (id, admin_id, email, password_hash, first_name, last_name, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (generate_id(), admin_id, email.lower(), generate_password_hash(password),
             'System', 'Administrator', utcnow())
        )
        logger.info(f"Default admin account created: {admin_id}")
        return True
