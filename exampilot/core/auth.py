from collections import namedtuple
from functools import wraps

from flask import jsonify, request, session
from pydantic import ValidationError as PydanticValidationError

from exampilot.core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from exampilot.schemas.user import AdminLogin, StudentCreate, StudentLogin

ROLE_STUDENT = 'student'
ROLE_ADMIN = 'admin'

# リクエストごとの認証済みID。サービス層には明示的に渡す
Principal = namedtuple('Principal', ['user_id', 'role'])


def parse_body(model):
    """リクエストのJSONをpydanticモデルに変換する

    変換できない場合は ValidationError(400) として扱う。
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        details = [
            {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
            for err in e.errors()
        ]
        raise ValidationError('Invalid request data', details=details)


def current_principal():
    user_id = session.get('user_id')
    role = session.get('role')
    if not user_id or role not in (ROLE_STUDENT, ROLE_ADMIN):
        return None
    return Principal(user_id, role)


def _role_required(role):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                raise Unauthenticated()
            if principal.role != role:
                raise Forbidden(f'{role.capitalize()} access required')
            kwargs['principal'] = principal
            return f(*args, **kwargs)
        return decorated_function
    return decorator


student_required = _role_required(ROLE_STUDENT)

admin_required = _role_required(ROLE_ADMIN)


def _login(user_id, role):
    session.clear()
    session.permanent = True
    session['user_id'] = user_id
    session['role'] = role


def init_auth_routes(app, account_manager):
    """認証ルートの初期化"""

    @app.route('/api/student/register', methods=['POST'])
    def student_register():
        data = parse_body(StudentCreate)
        student = account_manager.register_student(data)
        _login(student.id, ROLE_STUDENT)
        return jsonify(student.to_json()), 201

    @app.route('/api/student/login', methods=['POST'])
    def student_login():
        data = parse_body(StudentLogin)
        student = account_manager.authenticate_student(data.email, data.password)
        if not student:
            app.logger.warning(f"Failed student login: {data.email}")
            raise Unauthenticated('Invalid email or password')
        _login(student.id, ROLE_STUDENT)
        app.logger.info(f"Student logged in: {student.student_id}")
        return jsonify(student.to_json())

    @app.route('/api/student/logout', methods=['POST'])
    def student_logout():
        session.clear()
        return jsonify({'message': 'Logged out successfully'})

    @app.route('/api/student/me')
    @student_required
    def student_me(principal):
        student = account_manager.get_student(principal.user_id)
        if not student:
            # アカウント削除後に残ったセッション
            session.clear()
            raise NotFound('Student not found')
        return jsonify(student.to_json())

    @app.route('/api/admin/login', methods=['POST'])
    def admin_login():
        data = parse_body(AdminLogin)
        admin = account_manager.authenticate_admin(data.admin_id, data.password)
        if not admin:
            app.logger.warning(f"Failed admin login: {data.admin_id}")
            raise Unauthenticated('Invalid admin credentials')
        _login(admin.id, ROLE_ADMIN)
        app.logger.info(f"Admin logged in: {admin.admin_id}")
        return jsonify(admin.to_json())

    @app.route('/api/admin/logout', methods=['POST'])
    def admin_logout():
        session.clear()
        return jsonify({'message': 'Logged out successfully'})

    @app.route('/api/admin/me')
    @admin_required
    def admin_me(principal):
        admin = account_manager.get_admin(principal.user_id)
        if not admin:
            session.clear()
            raise NotFound('Admin not found')
        return jsonify(admin.to_json())
