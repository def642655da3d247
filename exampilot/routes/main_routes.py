"""
ヘルスチェック
"""
from flask import Blueprint, current_app, jsonify

from exampilot.core.database import utcnow

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """ヘルスチェックエンドポイント"""
    db_ok = current_app.db_manager.ping()
    payload = {
        'status': 'healthy' if db_ok else 'unhealthy',
        'database': current_app.db_manager.db_type,
        'timestamp': utcnow().isoformat(),
    }
    return jsonify(payload), 200 if db_ok else 503
