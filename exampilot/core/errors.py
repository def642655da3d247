"""
アプリケーション例外の定義
サービス層で送出し、app.py のエラーハンドラでJSONレスポンスに変換する
"""


class ExamPilotError(Exception):
    """全アプリケーション例外の基底クラス"""
    status_code = 500
    default_message = 'Server error'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(ExamPilotError):
    """リクエストの形式不正"""
    status_code = 400
    default_message = 'Invalid input'


class InvalidState(ExamPilotError):
    """完了済みの受験に対する操作など、状態遷移として不正な操作"""
    status_code = 400
    default_message = 'Invalid state'


class Unauthenticated(ExamPilotError):
    status_code = 401
    default_message = 'Authentication required'


class Forbidden(ExamPilotError):
    """所有者・ロールの不一致"""
    status_code = 403
    default_message = 'Forbidden'


class NotFound(ExamPilotError):
    status_code = 404
    default_message = 'Not found'
