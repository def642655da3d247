"""
データベース管理クラス（SQLite/PostgreSQL対応）
接続管理・スキーマ初期化・クエリ実行をまとめる
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal

logger = logging.getLogger(__name__)


def generate_id():
    """主キー用のID（UUID4）"""
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


SQLITE_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS students (
        id TEXT PRIMARY KEY,
        student_id TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        created_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS admins (
        id TEXT PRIMARY KEY,
        admin_id TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        created_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS courses (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        duration_minutes INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS questions (
        id TEXT PRIMARY KEY,
        course_id TEXT NOT NULL,
        question_text TEXT NOT NULL,
        option_a TEXT NOT NULL,
        option_b TEXT NOT NULL,
        option_c TEXT NOT NULL,
        option_d TEXT NOT NULL,
        correct_answer TEXT NOT NULL,
        difficulty TEXT NOT NULL DEFAULT 'medium',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS test_attempts (
        id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL,
        course_id TEXT NOT NULL,
        started_at TEXT NOT NULL,
        completed_at TEXT,
        score REAL,
        total_questions INTEGER,
        correct_answers INTEGER,
        time_spent INTEGER,
        is_completed INTEGER NOT NULL DEFAULT 0
    )""",
    """CREATE TABLE IF NOT EXISTS test_answers (
        id TEXT PRIMARY KEY,
        test_attempt_id TEXT NOT NULL,
        question_id TEXT NOT NULL,
        selected_answer TEXT NOT NULL,
        is_correct INTEGER NOT NULL,
        time_spent INTEGER NOT NULL DEFAULT 0,
        answered_at TEXT NOT NULL
    )""",
]

POSTGRESQL_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS students (
        id VARCHAR(36) PRIMARY KEY,
        student_id VARCHAR(80) UNIQUE NOT NULL,
        email VARCHAR(255) UNIQUE NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        first_name VARCHAR(120) NOT NULL,
        last_name VARCHAR(120) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS admins (
        id VARCHAR(36) PRIMARY KEY,
        admin_id VARCHAR(80) UNIQUE NOT NULL,
        email VARCHAR(255) UNIQUE NOT NULL,
        password_hash VARCHAR(255) NOT NULL,
        first_name VARCHAR(120) NOT NULL,
        last_name VARCHAR(120) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS courses (
        id VARCHAR(36) PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        description TEXT,
        duration_minutes INTEGER NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS questions (
        id VARCHAR(36) PRIMARY KEY,
        course_id VARCHAR(36) NOT NULL,
        question_text TEXT NOT NULL,
        option_a TEXT NOT NULL,
        option_b TEXT NOT NULL,
        option_c TEXT NOT NULL,
        option_d TEXT NOT NULL,
        correct_answer VARCHAR(1) NOT NULL,
        difficulty VARCHAR(20) NOT NULL DEFAULT 'medium',
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS test_attempts (
        id VARCHAR(36) PRIMARY KEY,
        student_id VARCHAR(36) NOT NULL,
        course_id VARCHAR(36) NOT NULL,
        started_at TIMESTAMPTZ NOT NULL,
        completed_at TIMESTAMPTZ,
        score NUMERIC(5, 2),
        total_questions INTEGER,
        correct_answers INTEGER,
        time_spent INTEGER,
        is_completed BOOLEAN NOT NULL DEFAULT FALSE
    )""",
    """CREATE TABLE IF NOT EXISTS test_answers (
        id VARCHAR(36) PRIMARY KEY,
        test_attempt_id VARCHAR(36) NOT NULL,
        question_id VARCHAR(36) NOT NULL,
        selected_answer VARCHAR(1) NOT NULL,
        is_correct BOOLEAN NOT NULL,
        time_spent INTEGER NOT NULL DEFAULT 0,
        answered_at TIMESTAMPTZ NOT NULL
    )""",
]

# 両DB共通のインデックス
INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_questions_course_id ON questions(course_id)",
    "CREATE INDEX IF NOT EXISTS idx_test_attempts_student_id ON test_attempts(student_id)",
    "CREATE INDEX IF NOT EXISTS idx_test_attempts_course_id ON test_attempts(course_id)",
    # 1受験1問につき解答は1行のみ（upsertの衝突キー）
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_test_answers_attempt_question "
    "ON test_answers(test_attempt_id, question_id)",
]


class Transaction:
    """1つの接続上でクエリを実行するためのハンドル

    DatabaseManager と同じ execute_query インターフェースを持つので、
    ストア側はどちらを受け取っても同じように扱える。
    """

    def __init__(self, db_manager, conn):
        self.db_manager = db_manager
        self.db_type = db_manager.db_type
        self._conn = conn

    def execute_query(self, query, params=None):
        return self.db_manager._run(self._conn, query, params)

    def lock_clause(self):
        """SELECT に付ける行ロック句（SQLiteはトランザクション開始時にロック済み）"""
        return ' FOR UPDATE' if self.db_type == 'postgresql' else ''


class DatabaseManager:
    def __init__(self, config):
        self.db_type = config['DATABASE_TYPE']
        self.config = config

    def get_connection(self):
        if self.db_type == 'postgresql':
            import psycopg2

            conn = psycopg2.connect(
                host=self.config['DB_HOST'],
                database=self.config['DB_NAME'],
                user=self.config['DB_USER'],
                password=self.config['DB_PASSWORD'],
                port=self.config['DB_PORT']
            )
            conn.autocommit = False
            return conn
        else:
            db_path = self.config.get('DATABASE', 'exampilot.db')
            conn = sqlite3.connect(db_path)
            conn.row_factory = sqlite3.Row
            return conn

    def _prepare(self, query, params):
        """プレースホルダとパラメータをDBごとに変換"""
        params = tuple(params or ())
        if self.db_type == 'postgresql':
            return query.replace('?', '%s'), params
        # sqlite3 のdatetimeアダプタは非推奨なのでISO文字列で保存する
        adapted = tuple(p.isoformat() if isinstance(p, datetime) else p for p in params)
        return query, adapted

    def _normalize_row(self, row):
        result = dict(row)
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = float(value)
        return result

    def _run(self, conn, query, params=None):
        query, params = self._prepare(query, params)
        if self.db_type == 'postgresql':
            import psycopg2.extras

            cur = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        else:
            cur = conn.cursor()
        try:
            cur.execute(query, params)
            if query.strip().upper().startswith(('SELECT', 'WITH', 'PRAGMA')):
                return [self._normalize_row(row) for row in cur.fetchall()]
            return cur.rowcount
        finally:
            cur.close()

    def execute_query(self, query, params=None):
        conn = self.get_connection()
        try:
            result = self._run(conn, query, params)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """複数クエリを1トランザクションで実行するコンテキストマネージャー

        SQLiteでは BEGIN IMMEDIATE で書き込みロックを先に取る。
        PostgreSQLは READ COMMITTED のまま、対象行を SELECT ... FOR UPDATE でロックする
        （lock_clause() を参照）。
        """
        conn = self.get_connection()
        try:
            if self.db_type != 'postgresql':
                conn.execute('BEGIN IMMEDIATE')
            yield Transaction(self, conn)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self):
        schema = POSTGRESQL_SCHEMA if self.db_type == 'postgresql' else SQLITE_SCHEMA
        for query in schema + INDEXES:
            self.execute_query(query)
        logger.info("Database initialized (%s)", self.db_type)

    def ping(self):
        """接続確認（ヘルスチェック用）"""
        try:
            self.execute_query('SELECT 1 AS ok')
            return True
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False
