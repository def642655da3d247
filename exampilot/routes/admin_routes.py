"""
管理者用のルーティング
コース・問題の管理と成績集計
"""
from datetime import date

from flask import Blueprint, Response, current_app, jsonify

from exampilot.core.auth import admin_required, parse_body
from exampilot.schemas.course import CourseCreate, CourseUpdate, QuestionCreate, QuestionUpdate

admin_bp = Blueprint('admin', __name__)


# --- コース管理 ---

@admin_bp.route('/courses', methods=['GET'])
@admin_required
def list_courses(principal):
    courses = current_app.course_store.list_courses(include_inactive=True)
    return jsonify([course.to_json() for course in courses])


@admin_bp.route('/courses', methods=['POST'])
@admin_required
def create_course(principal):
    data = parse_body(CourseCreate)
    course = current_app.course_store.create_course(data)
    return jsonify(course.to_json()), 201


@admin_bp.route('/courses/<course_id>', methods=['PUT'])
@admin_required
def update_course(course_id, principal):
    data = parse_body(CourseUpdate)
    course = current_app.course_store.update_course(course_id, data)
    return jsonify(course.to_json())


@admin_bp.route('/courses/<course_id>', methods=['DELETE'])
@admin_required
def delete_course(course_id, principal):
    current_app.course_store.delete_course(course_id)
    return jsonify({'message': 'Course deactivated successfully'})


@admin_bp.route('/courses/<course_id>/questions')
@admin_required
def course_questions(course_id, principal):
    current_app.course_store.require_course(course_id)
    questions = current_app.course_store.get_questions_by_course(course_id)
    return jsonify([question.to_json() for question in questions])


# --- 問題管理 ---

@admin_bp.route('/questions', methods=['GET'])
@admin_required
def list_questions(principal):
    questions = current_app.course_store.list_all_questions()
    return jsonify([question.to_json() for question in questions])


@admin_bp.route('/questions', methods=['POST'])
@admin_required
def create_question(principal):
    data = parse_body(QuestionCreate)
    question = current_app.course_store.create_question(data)
    current_app.logger.info(f"Question created: {question.id} (course={question.course_id})")
    return jsonify(question.to_json()), 201


@admin_bp.route('/questions/<question_id>', methods=['PUT'])
@admin_required
def update_question(question_id, principal):
    data = parse_body(QuestionUpdate)
    question = current_app.course_store.update_question(question_id, data)
    return jsonify(question.to_json())


@admin_bp.route('/questions/<question_id>', methods=['DELETE'])
@admin_required
def delete_question(question_id, principal):
    current_app.course_store.delete_question(question_id)
    return jsonify({'message': 'Question deleted successfully'})


# --- 集計 ---

@admin_bp.route('/stats')
@admin_required
def stats(principal):
    return jsonify(current_app.report_manager.get_stats().to_json())


@admin_bp.route('/recent-activity')
@admin_required
def recent_activity(principal):
    activity = current_app.report_manager.get_recent_activity()
    return jsonify([item.to_json() for item in activity])


@admin_bp.route('/student-results')
@admin_required
def student_results(principal):
    results = current_app.report_manager.get_student_results()
    return jsonify([result.to_json() for result in results])


@admin_bp.route('/student-results/export')
@admin_required
def export_student_results(principal):
    """成績一覧のCSVダウンロード"""
    content = current_app.report_manager.export_student_results_csv()
    filename = f'student_results_{date.today().isoformat()}.csv'
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
