"""
受験（TestAttempt）のライフサイクル管理と解答記録

- 受験開始: 常に新しい受験を作成する（同一コースの受験中データは再利用しない）
- 解答記録: 正誤はサーバー側で判定し、(受験, 問題) ごとに1行をupsertする
- 受験完了: コースの現行問題セットと記録済み解答から採点し直して確定する
"""

import logging

from exampilot.core.database import generate_id, utcnow
from exampilot.core.errors import Forbidden, InvalidState, NotFound
from exampilot.core.scoring import score_attempt
from exampilot.schemas.test_attempt import ReviewAnswer, TestAnswer, TestAttempt, TestResult

logger = logging.getLogger(__name__)


class AttemptManager:
    """受験の開始・完了・履歴・結果取得"""

    def __init__(self, db_manager, course_store):
        self.db_manager = db_manager
        self.course_store = course_store

    def get_attempt(self, attempt_id, executor=None):
        rows = (executor or self.db_manager).execute_query(
            'SELECT * FROM test_attempts WHERE id = ?', (attempt_id,)
        )
        return TestAttempt.model_validate(rows[0]) if rows else None

    def get_owned_attempt(self, principal, attempt_id, executor=None):
        """受験を取得し、リクエスト者の所有であることを確認する

        トランザクション中は受験行をロックするので、同じ受験への
        解答記録と受験完了は1つずつ実行される。
        """
        if executor is not None:
            rows = executor.execute_query(
                'SELECT * FROM test_attempts WHERE id = ?' + executor.lock_clause(), (attempt_id,)
            )
            attempt = TestAttempt.model_validate(rows[0]) if rows else None
        else:
            attempt = self.get_attempt(attempt_id)
        if not attempt:
            raise NotFound('Test attempt not found')
        if attempt.student_id != principal.user_id:
            raise Forbidden("Unauthorized - this test attempt belongs to another student")
        return attempt

    def start_attempt(self, principal, course_id):
        course = self.course_store.get_course(course_id)
        if not course or not course.is_active:
            raise NotFound('Course not found')

        attempt_id = generate_id()
        self.db_manager.execute_query(
            '''INSERT INTO test_attempts (id, student_id, course_id, started_at, is_completed)
               VALUES (?, ?, ?, ?, ?)''',
            (attempt_id, principal.user_id, course_id, utcnow(), False)
        )
        logger.info(f"Test attempt started: {attempt_id} (student={principal.user_id}, course={course_id})")
        return self.get_attempt(attempt_id)

    def complete_attempt(self, principal, attempt_id, time_spent):
        """受験完了

        問題取得・解答取得・結果書き込みを1トランザクションで行う。
        2回呼ばれた場合は再計算して上書きする。
        """
        with self.db_manager.transaction() as tx:
            attempt = self.get_owned_attempt(principal, attempt_id, tx)

            questions = self.course_store.get_questions_by_course(attempt.course_id, tx)
            answers = get_answers(tx, attempt_id)
            result = score_attempt((q.id for q in questions), answers)

            tx.execute_query(
                '''UPDATE test_attempts
                   SET completed_at = ?, score = ?, correct_answers = ?, total_questions = ?,
                       time_spent = ?, is_completed = ?
                   WHERE id = ?''',
                (utcnow(), result.score, result.correct_answers, result.total_questions,
                 time_spent or 0, True, attempt_id)
            )
            completed = self.get_attempt(attempt_id, tx)

        logger.info(
            f"Test attempt completed: {attempt_id} "
            f"({result.correct_answers}/{result.total_questions} = {result.score}%)"
        )
        return completed

    def get_history(self, principal):
        """完了済みの受験履歴（新しい順）"""
        rows = self.db_manager.execute_query('''
            SELECT ta.*, c.name AS course_name
            FROM test_attempts ta
            INNER JOIN courses c ON ta.course_id = c.id
            WHERE ta.student_id = ? AND ta.is_completed = ?
            ORDER BY ta.completed_at DESC
        ''', (principal.user_id, True))
        return [TestAttempt.model_validate(row) for row in rows]

    def get_results(self, principal, attempt_id):
        """受験結果（解答ごとの問題文・正解つき）"""
        attempt = self.get_owned_attempt(principal, attempt_id)
        if not attempt.is_completed:
            raise InvalidState('Test attempt is not completed yet')

        rows = self.db_manager.execute_query('''
            SELECT ans.*, q.question_text, q.correct_answer
            FROM test_answers ans
            INNER JOIN questions q ON ans.question_id = q.id
            WHERE ans.test_attempt_id = ?
            ORDER BY ans.answered_at, ans.id
        ''', (attempt_id,))
        return TestResult(
            test_attempt=attempt,
            answers=[ReviewAnswer.model_validate(row) for row in rows],
        )


class AnswerRecorder:
    """解答の記録"""

    def __init__(self, db_manager, course_store, attempt_manager):
        self.db_manager = db_manager
        self.course_store = course_store
        self.attempt_manager = attempt_manager

    def record_answer(self, principal, attempt_id, question_id, selected_answer, time_spent=0):
        """解答を記録する

        チェックは 受験の存在 → 所有者 → 未完了 → 問題の存在 → コース一致 の順。
        すべて通過するまで書き込みは行わない。
        """
        with self.db_manager.transaction() as tx:
            attempt = self.attempt_manager.get_owned_attempt(principal, attempt_id, tx)
            if attempt.is_completed:
                raise InvalidState('Cannot submit answers to a completed test')

            question = self.course_store.get_question(question_id, tx)
            if not question:
                raise NotFound('Question not found')
            if question.course_id != attempt.course_id:
                raise Forbidden("Question does not belong to this test's course")

            is_correct = selected_answer == question.correct_answer
            tx.execute_query(
                '''INSERT INTO test_answers
                   (id, test_attempt_id, question_id, selected_answer, is_correct, time_spent, answered_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (test_attempt_id, question_id) DO UPDATE SET
                       selected_answer = excluded.selected_answer,
                       is_correct = excluded.is_correct,
                       time_spent = excluded.time_spent,
                       answered_at = excluded.answered_at''',
                (generate_id(), attempt_id, question_id, selected_answer, is_correct,
                 time_spent or 0, utcnow())
            )
            rows = tx.execute_query(
                'SELECT * FROM test_answers WHERE test_attempt_id = ? AND question_id = ?',
                (attempt_id, question_id)
            )

        return TestAnswer.model_validate(rows[0])


def get_answers(executor, attempt_id):
    """受験の解答を記録順で取得"""
    rows = executor.execute_query(
        'SELECT * FROM test_answers WHERE test_attempt_id = ? ORDER BY answered_at, id',
        (attempt_id,)
    )
    return [TestAnswer.model_validate(row) for row in rows]
