"""
アプリケーション設定
環境変数（ローカル開発では .env）から読み込む
"""
import os
from urllib.parse import unquote, urlparse

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = 'sqlite:///exampilot.db'
DEFAULT_PG_PORT = 5432


def _env_flag(name, default):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def normalize_database_url(url):
    """postgres:// を psycopg2 が受け付ける postgresql:// に揃える"""
    if not url:
        return DEFAULT_DATABASE_URL
    if url.startswith('postgres://'):
        return 'postgresql://' + url[len('postgres://'):]
    return url


def parse_database_url(url):
    """DATABASE_URL を DatabaseManager 用の接続情報に分解する"""
    if not url.startswith('postgresql://'):
        return {
            'DATABASE_TYPE': 'sqlite',
            'DB_NAME': url[len('sqlite:///'):] if url.startswith('sqlite:///') else url,
            'DB_USER': None,
            'DB_PASSWORD': None,
            'DB_HOST': None,
            'DB_PORT': None,
        }

    parsed = urlparse(url)
    db_name = parsed.path.lstrip('/')
    if not parsed.hostname or not db_name:
        raise ValueError('Invalid PostgreSQL DATABASE_URL format')
    return {
        'DATABASE_TYPE': 'postgresql',
        'DB_NAME': db_name,
        'DB_USER': unquote(parsed.username) if parsed.username else None,
        'DB_PASSWORD': unquote(parsed.password) if parsed.password else None,
        'DB_HOST': parsed.hostname,
        'DB_PORT': parsed.port or DEFAULT_PG_PORT,
    }


class Config:
    """環境変数ベースの設定（テストではサブクラス化して上書きする）"""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    FLASK_ENV = os.environ.get('FLASK_ENV', 'development')
    DEBUG = _env_flag('DEBUG', 'True')
    TESTING = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # ログインセッションの有効期間（時間）
    SESSION_LIFETIME_HOURS = int(os.environ.get('SESSION_LIFETIME_HOURS', 24 * 7))

    DATABASE_URL = normalize_database_url(os.environ.get('DATABASE_URL'))
    _db = parse_database_url(DATABASE_URL)
    DATABASE_TYPE = _db['DATABASE_TYPE']
    DB_NAME = _db['DB_NAME']
    DB_USER = _db['DB_USER']
    DB_PASSWORD = _db['DB_PASSWORD']
    DB_HOST = _db['DB_HOST']
    DB_PORT = _db['DB_PORT']
    del _db

    # 起動時に存在しなければ作成する初期管理者
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@exampilot.local')

    PORT = int(os.environ.get('PORT', 5000))
    HOST = os.environ.get('HOST', '0.0.0.0')

    @classmethod
    def get_db_config(cls):
        """DatabaseManager に渡す接続設定"""
        if cls.DATABASE_TYPE == 'postgresql':
            return {
                'DATABASE_TYPE': 'postgresql',
                'DB_NAME': cls.DB_NAME,
                'DB_USER': cls.DB_USER,
                'DB_PASSWORD': cls.DB_PASSWORD,
                'DB_HOST': cls.DB_HOST,
                'DB_PORT': cls.DB_PORT,
            }
        return {
            'DATABASE_TYPE': 'sqlite',
            'DATABASE': cls.DB_NAME,
        }
