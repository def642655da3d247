import pytest

from exampilot.core.accounts import AccountManager
from exampilot.core.attempts import AnswerRecorder, AttemptManager
from exampilot.core.auth import Principal
from exampilot.core.course_store import CourseStore
from exampilot.core.database import DatabaseManager, Transaction
from exampilot.core.errors import Forbidden, InvalidState, NotFound
from exampilot.schemas.course import CourseCreate, CourseUpdate, QuestionCreate
from exampilot.schemas.user import StudentCreate


class Services:
    def __init__(self, tmp_path):
        self.db = DatabaseManager({"DATABASE_TYPE": "sqlite", "DATABASE": str(tmp_path / "test.db")})
        self.db.init_database()
        self.accounts = AccountManager(self.db)
        self.courses = CourseStore(self.db)
        self.attempts = AttemptManager(self.db, self.courses)
        self.recorder = AnswerRecorder(self.db, self.courses, self.attempts)


@pytest.fixture()
def services(tmp_path):
    return Services(tmp_path)


def make_student(services, student_id="S001", email="taro@example.com"):
    student = services.accounts.register_student(StudentCreate(
        student_id=student_id,
        email=email,
        first_name="Taro",
        last_name="Yamada",
        password="secret123",
    ))
    return Principal(student.id, "student")


def make_course(services, answers=("A", "B", "C"), name="Python基礎"):
    course = services.courses.create_course(CourseCreate(name=name, duration_minutes=30))
    questions = [
        services.courses.create_question(QuestionCreate(
            course_id=course.id,
            question_text=f"問題{i + 1}",
            option_a="a",
            option_b="b",
            option_c="c",
            option_d="d",
            correct_answer=correct,
        ))
        for i, correct in enumerate(answers)
    ]
    return course, questions


def count_answers(services, attempt_id):
    rows = services.db.execute_query(
        "SELECT COUNT(*) AS count FROM test_answers WHERE test_attempt_id = ?", (attempt_id,)
    )
    return rows[0]["count"]


def test_scores_partially_correct_attempt(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)

    for question, selected in zip(questions, ["A", "B", "D"]):
        services.recorder.record_answer(student, attempt.id, question.id, selected, 10)

    completed = services.attempts.complete_attempt(student, attempt.id, 120)

    assert completed.is_completed is True
    assert completed.score == 66.67
    assert completed.correct_answers == 2
    assert completed.total_questions == 3
    assert completed.time_spent == 120
    assert completed.completed_at is not None


def test_answer_correctness_is_decided_on_server(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)

    wrong = services.recorder.record_answer(student, attempt.id, questions[0].id, "D")
    right = services.recorder.record_answer(student, attempt.id, questions[1].id, "B")

    assert wrong.is_correct is False
    assert wrong.time_spent == 0
    assert right.is_correct is True


def test_resubmission_replaces_previous_answer(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)

    services.recorder.record_answer(student, attempt.id, questions[0].id, "B")
    latest = services.recorder.record_answer(student, attempt.id, questions[0].id, "A")

    assert latest.selected_answer == "A"
    assert latest.is_correct is True
    assert count_answers(services, attempt.id) == 1

    completed = services.attempts.complete_attempt(student, attempt.id, 60)
    assert completed.correct_answers == 1
    assert completed.score == 33.33


def test_deleted_question_is_excluded_from_score(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)

    for question in questions:
        services.recorder.record_answer(student, attempt.id, question.id, question.correct_answer)
    services.courses.delete_question(questions[2].id)

    completed = services.attempts.complete_attempt(student, attempt.id, 90)

    assert completed.total_questions == 2
    assert completed.correct_answers == 2
    assert completed.score == 100.0


def test_complete_without_questions_scores_zero(services):
    student = make_student(services)
    course, _ = make_course(services, answers=())
    attempt = services.attempts.start_attempt(student, course.id)

    completed = services.attempts.complete_attempt(student, attempt.id, 5)

    assert completed.score == 0
    assert completed.total_questions == 0


def test_complete_twice_recomputes(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)
    services.recorder.record_answer(student, attempt.id, questions[0].id, "A")

    first = services.attempts.complete_attempt(student, attempt.id, 30)
    second = services.attempts.complete_attempt(student, attempt.id, 45)

    assert first.score == second.score == 33.33
    assert second.time_spent == 45


def test_start_attempt_always_creates_new_attempt(services):
    student = make_student(services)
    course, _ = make_course(services)

    first = services.attempts.start_attempt(student, course.id)
    second = services.attempts.start_attempt(student, course.id)

    assert first.id != second.id
    assert first.is_completed is False
    assert first.score is None


def test_start_attempt_requires_active_course(services):
    student = make_student(services)
    course, _ = make_course(services)
    services.courses.update_course(course.id, CourseUpdate(is_active=False))

    with pytest.raises(NotFound):
        services.attempts.start_attempt(student, course.id)
    with pytest.raises(NotFound):
        services.attempts.start_attempt(student, "missing")


class TestRecordAnswerValidation:
    def test_missing_attempt(self, services):
        student = make_student(services)
        _, questions = make_course(services)

        with pytest.raises(NotFound):
            services.recorder.record_answer(student, "missing", questions[0].id, "A")

    def test_other_students_attempt_is_checked_before_question(self, services):
        owner = make_student(services)
        intruder = make_student(services, student_id="S002", email="hanako@example.com")
        course, _ = make_course(services)
        attempt = services.attempts.start_attempt(owner, course.id)

        with pytest.raises(Forbidden):
            services.recorder.record_answer(intruder, attempt.id, "missing", "A")
        assert count_answers(services, attempt.id) == 0

    def test_completed_attempt_rejects_answers(self, services):
        student = make_student(services)
        course, questions = make_course(services)
        attempt = services.attempts.start_attempt(student, course.id)
        services.attempts.complete_attempt(student, attempt.id, 10)

        with pytest.raises(InvalidState):
            services.recorder.record_answer(student, attempt.id, questions[0].id, "A")
        assert count_answers(services, attempt.id) == 0

    def test_missing_question(self, services):
        student = make_student(services)
        course, _ = make_course(services)
        attempt = services.attempts.start_attempt(student, course.id)

        with pytest.raises(NotFound):
            services.recorder.record_answer(student, attempt.id, "missing", "A")

    def test_question_from_another_course(self, services):
        student = make_student(services)
        course, _ = make_course(services)
        _, other_questions = make_course(services, name="SQL入門")
        attempt = services.attempts.start_attempt(student, course.id)

        with pytest.raises(Forbidden):
            services.recorder.record_answer(student, attempt.id, other_questions[0].id, "A")
        assert count_answers(services, attempt.id) == 0


def test_complete_by_other_student_leaves_attempt_unchanged(services):
    owner = make_student(services)
    intruder = make_student(services, student_id="S002", email="hanako@example.com")
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(owner, course.id)
    services.recorder.record_answer(owner, attempt.id, questions[0].id, "A")

    with pytest.raises(Forbidden):
        services.attempts.complete_attempt(intruder, attempt.id, 10)
    with pytest.raises(NotFound):
        services.attempts.complete_attempt(owner, "missing", 10)

    unchanged = services.attempts.get_attempt(attempt.id)
    assert unchanged.is_completed is False
    assert unchanged.score is None
    assert unchanged.completed_at is None


def test_history_lists_completed_attempts_newest_first(services):
    student = make_student(services)
    other = make_student(services, student_id="S002", email="hanako@example.com")
    course, _ = make_course(services)
    second_course, _ = make_course(services, name="SQL入門")

    first = services.attempts.start_attempt(student, course.id)
    services.attempts.complete_attempt(student, first.id, 10)
    second = services.attempts.start_attempt(student, second_course.id)
    services.attempts.complete_attempt(student, second.id, 10)
    services.attempts.start_attempt(student, course.id)
    others = services.attempts.start_attempt(other, course.id)
    services.attempts.complete_attempt(other, others.id, 10)

    history = services.attempts.get_history(student)

    assert [attempt.id for attempt in history] == [second.id, first.id]
    assert [attempt.course_name for attempt in history] == ["SQL入門", "Python基礎"]


def test_results_include_question_text_and_correct_answer(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)
    services.recorder.record_answer(student, attempt.id, questions[0].id, "C")
    services.recorder.record_answer(student, attempt.id, questions[1].id, "B")

    with pytest.raises(InvalidState):
        services.attempts.get_results(student, attempt.id)

    services.attempts.complete_attempt(student, attempt.id, 30)
    result = services.attempts.get_results(student, attempt.id)

    assert result.test_attempt.id == attempt.id
    by_question = {answer.question_id: answer for answer in result.answers}
    assert by_question[questions[0].id].question_text == "問題1"
    assert by_question[questions[0].id].correct_answer == "A"
    assert by_question[questions[0].id].is_correct is False
    assert by_question[questions[1].id].is_correct is True


def test_results_skip_answers_to_deleted_questions(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)
    services.recorder.record_answer(student, attempt.id, questions[0].id, "A")
    services.recorder.record_answer(student, attempt.id, questions[1].id, "B")
    services.attempts.complete_attempt(student, attempt.id, 30)
    services.courses.delete_question(questions[1].id)

    result = services.attempts.get_results(student, attempt.id)

    assert [answer.question_id for answer in result.answers] == [questions[0].id]


def test_results_are_private_to_owner(services):
    owner = make_student(services)
    intruder = make_student(services, student_id="S002", email="hanako@example.com")
    course, _ = make_course(services)
    attempt = services.attempts.start_attempt(owner, course.id)
    services.attempts.complete_attempt(owner, attempt.id, 30)

    with pytest.raises(Forbidden):
        services.attempts.get_results(intruder, attempt.id)
    with pytest.raises(NotFound):
        services.attempts.get_results(owner, "missing")


def test_correct_answer_overridden_by_later_wrong_answer(services):
    student = make_student(services)
    course, questions = make_course(services)
    attempt = services.attempts.start_attempt(student, course.id)

    services.recorder.record_answer(student, attempt.id, questions[0].id, "A")
    services.recorder.record_answer(student, attempt.id, questions[0].id, "B")

    completed = services.attempts.complete_attempt(student, attempt.id, 60)

    assert count_answers(services, attempt.id) == 1
    assert completed.correct_answers == 0
    assert completed.total_questions == 3
    assert completed.score == 0


ATTEMPT_ROW = {
    "id": "t1",
    "student_id": "s1",
    "course_id": "c1",
    "started_at": "2024-01-01T00:00:00+00:00",
    "is_completed": False,
}


class RecordingManager:
    def __init__(self, db_type):
        self.db_type = db_type
        self.queries = []

    def _run(self, conn, query, params=None):
        self.queries.append(query)
        return [dict(ATTEMPT_ROW)]


class FakeConnection:
    def __init__(self):
        self.executed = []
        self.cursor_calls = 0
        self.committed = False
        self.closed = False

    def execute(self, query):
        self.executed.append(query)

    def cursor(self, *args, **kwargs):
        self.cursor_calls += 1
        raise AssertionError("transaction() should not issue statements on PostgreSQL")

    def commit(self):
        self.committed = True

    def rollback(self):
        pass

    def close(self):
        self.closed = True


def test_owned_attempt_row_is_locked_in_postgresql_transaction():
    manager = RecordingManager("postgresql")
    tx = Transaction(manager, conn=None)

    attempt = AttemptManager(manager, course_store=None).get_owned_attempt(Principal("s1", "student"), "t1", tx)

    assert attempt.id == "t1"
    assert manager.queries[-1].endswith("FOR UPDATE")


def test_sqlite_transaction_reads_attempt_without_row_lock():
    manager = RecordingManager("sqlite")
    tx = Transaction(manager, conn=None)

    AttemptManager(manager, course_store=None).get_owned_attempt(Principal("s1", "student"), "t1", tx)

    assert "FOR UPDATE" not in manager.queries[-1]


def test_postgresql_transaction_keeps_default_isolation(monkeypatch):
    db = DatabaseManager({"DATABASE_TYPE": "postgresql"})
    conn = FakeConnection()
    monkeypatch.setattr(db, "get_connection", lambda: conn)

    with db.transaction() as tx:
        assert tx.lock_clause() == " FOR UPDATE"

    assert conn.executed == []
    assert conn.cursor_calls == 0
    assert conn.committed is True
    assert conn.closed is True


def test_sqlite_transaction_takes_write_lock_up_front(monkeypatch):
    db = DatabaseManager({"DATABASE_TYPE": "sqlite", "DATABASE": ":memory:"})
    conn = FakeConnection()
    monkeypatch.setattr(db, "get_connection", lambda: conn)

    with db.transaction() as tx:
        assert tx.lock_clause() == ""

    assert conn.executed == ["BEGIN IMMEDIATE"]
    assert conn.committed is True
