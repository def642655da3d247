"""
採点エンジン
永続化済みの解答とコースの現行問題セットから最終スコアを計算する（副作用なし）
"""

from collections import namedtuple

ScoreResult = namedtuple('ScoreResult', ['score', 'correct_answers', 'total_questions'])


def _get(answer, key):
    if isinstance(answer, dict):
        return answer[key]
    return getattr(answer, key)


def latest_answers(answers, course_question_ids):
    """コースに属する問題の解答だけを残し、問題ごとに最後の解答を返す

    answers は記録順（古い順）に並んでいる前提。
    """
    latest = {}
    for answer in answers:
        question_id = _get(answer, 'question_id')
        if question_id not in course_question_ids:
            # 削除済み・他コースの問題への解答は採点対象外
            continue
        latest[question_id] = answer
    return latest


def calculate_score(correct_answers, total_questions):
    if total_questions <= 0:
        return 0
    return round(correct_answers / total_questions * 100, 2)


def score_attempt(course_question_ids, answers):
    """受験の採点

    Args:
        course_question_ids: 完了時点でコースに属している問題IDの集合
        answers: 受験の解答（dict または question_id/is_correct 属性を持つオブジェクト）

    未解答の問題も分母に含めるため、total_questions は解答数ではなく問題数。
    """
    question_ids = set(course_question_ids)
    latest = latest_answers(answers, question_ids)
    correct_answers = sum(1 for answer in latest.values() if _get(answer, 'is_correct'))
    total_questions = len(question_ids)

    return ScoreResult(
        score=calculate_score(correct_answers, total_questions),
        correct_answers=correct_answers,
        total_questions=total_questions,
    )
