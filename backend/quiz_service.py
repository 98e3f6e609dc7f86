import logging
import random
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import AlreadyAnsweredError, InternalError, InvalidUploadError, NotFoundError
from models import Question, QuizAttempt
from schemas import QuestionRow, QuestionView
from tabular import map_columns

logger = logging.getLogger(__name__)

QUESTION_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "org_id": ("org id", "question id"),
    "number": ("number", "question number", "№ вопроса"),
    "question": ("question", "question text", "вопрос"),
    "correct_answer": ("correct answer", "верный ответ"),
    "incorrect_answer_1": ("incorrect answer 1", "incorrect answer", "неверный ответ"),
    "incorrect_answer_2": ("incorrect answer 2", "incorrect answer.1", "неверный ответ.1"),
    "incorrect_answer_3": ("incorrect answer 3", "incorrect answer.2", "неверный ответ.2"),
}


def question_rows_from_table(rows: List[Dict[str, str]]) -> List[QuestionRow]:
    return [QuestionRow(**map_columns(row, QUESTION_COLUMN_ALIASES)) for row in rows]


def _coerce_number(row: QuestionRow) -> int:
    raw = row.number.strip()
    try:
        return int(raw)
    except ValueError:
        raise InvalidUploadError(f"Question '{row.org_id}': number '{raw}' is not an integer")


def replace_questions(db: Session, rows: List[QuestionRow]) -> int:
    """Replace the whole question set in one transaction.

    Attempts reference questions, so they are cleared together with the old
    set. Any bad row fails the upload before anything is deleted.
    """
    questions = []
    seen_ids: Set[str] = set()
    for row in rows:
        org_id = row.org_id.strip()
        if org_id in seen_ids:
            raise InvalidUploadError(f"Duplicate question id '{org_id}'")
        seen_ids.add(org_id)
        questions.append(Question(
            org_id=org_id,
            number=_coerce_number(row),
            question_text=row.question,
            correct_answer=row.correct_answer,
            incorrect_answer_1=row.incorrect_answer_1,
            incorrect_answer_2=row.incorrect_answer_2,
            incorrect_answer_3=row.incorrect_answer_3,
        ))

    try:
        cleared_attempts = db.query(QuizAttempt).delete(synchronize_session=False)
        db.query(Question).delete(synchronize_session=False)
        db.add_all(questions)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Question replace failed: %s", exc)
        raise InternalError("Failed to replace questions") from exc

    logger.info("Question set replaced: %d questions, %d attempts cleared", len(questions), cleared_attempts)
    return len(questions)


def list_questions(db: Session) -> List[Question]:
    return db.query(Question).order_by(Question.number.asc(), Question.id.asc()).all()


def get_attempt(db: Session, user_id: str, question_id: int) -> Optional[QuizAttempt]:
    return db.query(QuizAttempt).filter(
        QuizAttempt.user_id == user_id,
        QuizAttempt.question_id == question_id
    ).first()


def get_question_for_participant(db: Session, user_id: str, org_id: str) -> QuestionView:
    question = db.query(Question).filter(Question.org_id == org_id).first()
    if not question:
        raise NotFoundError("Question not found")
    if get_attempt(db, user_id, question.id):
        raise AlreadyAnsweredError()

    options = [
        option for option in (
            question.correct_answer,
            question.incorrect_answer_1,
            question.incorrect_answer_2,
            question.incorrect_answer_3,
        ) if option
    ]
    random.shuffle(options)
    return QuestionView(id=question.id, number=question.number, question=question.question_text, options=options)


def record_answer(db: Session, user_id: str, question_id: int, answer: str) -> QuizAttempt:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise NotFoundError("Question not found")
    if get_attempt(db, user_id, question_id):
        raise AlreadyAnsweredError()

    is_correct = answer == question.correct_answer
    attempt = QuizAttempt(
        user_id=user_id,
        question_id=question_id,
        answer=answer,
        is_correct=is_correct,
        score=1 if is_correct else 0,
    )
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Either a concurrent request stored the same pair first, or the
        # question was removed by a concurrent replace.
        if get_attempt(db, user_id, question_id):
            raise AlreadyAnsweredError() from exc
        raise NotFoundError("Question not found") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to record answer for user %s question %s: %s", user_id, question_id, exc)
        raise InternalError("Failed to record answer") from exc
    db.refresh(attempt)
    return attempt
