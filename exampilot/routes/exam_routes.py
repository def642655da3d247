"""
受験関連のルーティング（学生用）
"""
from flask import Blueprint, current_app, jsonify

from exampilot.core.auth import parse_body, student_required
from exampilot.core.errors import NotFound
from exampilot.schemas.test_attempt import AnswerSubmit, TestComplete, TestStart

exam_bp = Blueprint('exam', __name__)


@exam_bp.route('/courses')
def list_courses():
    """受験可能なコース一覧"""
    courses = current_app.course_store.list_active_courses()
    return jsonify([course.to_json() for course in courses])


@exam_bp.route('/questions/<course_id>')
@student_required
def course_questions(course_id, principal):
    """受験用の問題一覧（正解は含めない）"""
    course = current_app.course_store.get_course(course_id)
    if not course or not course.is_active:
        raise NotFound('Course not found')
    questions = current_app.course_store.get_student_questions(course_id)
    return jsonify([question.to_json() for question in questions])


@exam_bp.route('/student/test/start', methods=['POST'])
@student_required
def start_test(principal):
    data = parse_body(TestStart)
    attempt = current_app.attempt_manager.start_attempt(principal, data.course_id)
    return jsonify(attempt.to_json())


@exam_bp.route('/student/test/answer', methods=['POST'])
@student_required
def submit_answer(principal):
    data = parse_body(AnswerSubmit)
    answer = current_app.answer_recorder.record_answer(
        principal,
        data.test_attempt_id,
        data.question_id,
        data.selected_answer,
        data.time_spent,
    )
    return jsonify(answer.to_json())


@exam_bp.route('/student/test/complete', methods=['POST'])
@student_required
def complete_test(principal):
    data = parse_body(TestComplete)
    attempt = current_app.attempt_manager.complete_attempt(
        principal, data.test_attempt_id, data.time_spent
    )
    return jsonify(attempt.to_json())


@exam_bp.route('/student/test/history')
@student_required
def test_history(principal):
    attempts = current_app.attempt_manager.get_history(principal)
    return jsonify([attempt.to_json() for attempt in attempts])


@exam_bp.route('/student/test/results/<test_attempt_id>')
@student_required
def test_results(test_attempt_id, principal):
    result = current_app.attempt_manager.get_results(principal, test_attempt_id)
    return jsonify(result.to_json())
