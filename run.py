#!/usr/bin/env python3
"""
ExamPilot CBTサーバー 起動スクリプト

使用方法:
    python run.py [--port PORT] [--host HOST] [--debug]
    python run.py --create-admin    # 管理者アカウントを対話的に作成
"""

import argparse
import getpass
import os
import sys


def build_parser():
    parser = argparse.ArgumentParser(description='ExamPilot CBTサーバー')
    parser.add_argument('--host', default=None, help='ホストアドレス (デフォルト: HOST 環境変数)')
    parser.add_argument('--port', type=int, default=None, help='ポート番号 (デフォルト: PORT 環境変数)')
    parser.add_argument('--debug', action='store_true', help='デバッグモードで起動')
    parser.add_argument('--create-admin', action='store_true', help='管理者アカウントを作成して終了')
    return parser


def create_admin(app):
    """管理者アカウントを対話的に作成"""
    from pydantic import ValidationError
    from exampilot.core.errors import ExamPilotError
    from exampilot.schemas.user import AdminCreate

    fields = {
        'admin_id': input('管理者ID: ').strip(),
        'email': input('メールアドレス: ').strip(),
        'first_name': input('名: ').strip(),
        'last_name': input('姓: ').strip(),
        'password': getpass.getpass('パスワード: '),
    }

    try:
        admin = app.account_manager.create_admin(AdminCreate(**fields))
    except ValidationError as e:
        print(f"入力エラー: {e}", file=sys.stderr)
        return 1
    except ExamPilotError as e:
        print(f"作成できませんでした: {e.message}", file=sys.stderr)
        return 1

    print(f"管理者を作成しました: {admin.admin_id}")
    return 0


def main():
    args = build_parser().parse_args()

    # Config はインポート時に環境変数を読むので先に反映する
    if args.debug:
        os.environ['FLASK_ENV'] = 'development'
        os.environ['DEBUG'] = 'True'

    from app import create_app
    from exampilot.core.config import Config

    app = create_app()

    if args.create_admin:
        return create_admin(app)

    host = args.host or Config.HOST
    port = args.port or Config.PORT
    app.logger.info(f"🚀 ExamPilot: http://{host}:{port} (debug={'on' if Config.DEBUG else 'off'}, db={Config.DATABASE_TYPE})")

    try:
        app.run(host=host, port=port, debug=Config.DEBUG, use_reloader=Config.DEBUG)
    except KeyboardInterrupt:
        print("\n🛑 アプリケーションを停止しました")
    return 0


if __name__ == '__main__':
    sys.exit(main())
