"""
ExamPilot CBT（コンピュータ試験）サーバー - メインアプリケーション
Flask + PostgreSQL/SQLite + 学生/管理者認証による受験・採点API
"""

import logging
from datetime import timedelta
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from exampilot.core.accounts import AccountManager
from exampilot.core.attempts import AnswerRecorder, AttemptManager
from exampilot.core.auth import init_auth_routes
from exampilot.core.config import Config
from exampilot.core.course_store import CourseStore
from exampilot.core.database import DatabaseManager
from exampilot.core.errors import ExamPilotError
from exampilot.core.reports import ReportManager
from exampilot.routes.admin_routes import admin_bp
from exampilot.routes.exam_routes import exam_bp
from exampilot.routes.main_routes import main_bp

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def create_app(config_class=Config):
    """Application Factory Pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # ログ設定
    _configure_logging(app, config_class)

    # セキュリティ設定
    _configure_security(app, config_class)

    # データベース初期化
    db_manager = _init_database(config_class)

    # アプリケーションコンテキスト設定
    app.db_manager = db_manager
    app.account_manager = AccountManager(db_manager)
    app.course_store = CourseStore(db_manager)
    app.attempt_manager = AttemptManager(db_manager, app.course_store)
    app.answer_recorder = AnswerRecorder(db_manager, app.course_store, app.attempt_manager)
    app.report_manager = ReportManager(db_manager)

    # 初期管理者
    app.account_manager.ensure_default_admin(
        config_class.ADMIN_USERNAME,
        app.config['ADMIN_PASSWORD'],
        config_class.ADMIN_EMAIL,
    )

    # 認証システム初期化
    init_auth_routes(app, app.account_manager)

    # ルーティング登録
    _register_blueprints(app)

    # エラーハンドラ登録
    _register_error_handlers(app)

    return app


def _configure_logging(app, config_class):
    """ログ設定"""
    level = getattr(logging, config_class.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger('exampilot').setLevel(level)
    app.logger.setLevel(level)


def _configure_security(app, config_class):
    """セキュリティ設定"""
    if not app.config['SECRET_KEY']:
        if config_class.DEBUG:
            app.config['SECRET_KEY'] = 'dev-secret-key-change-in-production'
            app.logger.warning("開発用のSECRET_KEYを使用しています。本番環境では必ず環境変数を設定してください。")
        else:
            raise ValueError("セキュリティエラー: SECRET_KEY環境変数が設定されていません。")

    if not app.config['ADMIN_PASSWORD']:
        if config_class.DEBUG:
            app.config['ADMIN_PASSWORD'] = 'dev-admin-password-CHANGE-ME'
            app.logger.warning("開発用のデフォルト管理者パスワードを使用しています。")
        else:
            raise ValueError("セキュリティエラー: ADMIN_PASSWORD環境変数が設定されていません。")

    # セッション設定
    app.config.update(
        SESSION_COOKIE_SECURE=not config_class.DEBUG,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=timedelta(hours=config_class.SESSION_LIFETIME_HOURS)
    )


def _init_database(config_class):
    """データベース初期化"""
    try:
        db_manager = DatabaseManager(config_class.get_db_config())
        db_manager.init_database()
        return db_manager
    except Exception as e:
        raise RuntimeError(f"データベース初期化エラー: {e}") from e


def _register_blueprints(app):
    """ブループリント登録"""
    blueprints = [
        (main_bp, {}),
        (exam_bp, {'url_prefix': '/api'}),
        (admin_bp, {'url_prefix': '/api/admin'}),
    ]

    for blueprint, options in blueprints:
        app.register_blueprint(blueprint, **options)


def _register_error_handlers(app):
    """例外をJSONレスポンス {"error": ...} に変換する"""

    @app.errorhandler(ExamPilotError)
    def handle_app_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    app = create_app()

    app.logger.info(f"🚀 Starting ExamPilot on port {Config.PORT}")
    app.logger.info(f"🔧 Debug mode: {'ON (開発環境)' if Config.DEBUG else 'OFF (本番環境)'}")
    app.logger.info(f"💾 Database: {Config.DATABASE_TYPE.upper()}")

    app.run(debug=Config.DEBUG, host=Config.HOST, port=Config.PORT)
