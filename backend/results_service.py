"""Per-participant results: point totals and the wide answers table.

Both views are recomputed from storage on every call.
"""
import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from models import Question, QuizAttempt, Telemetry, User
from schemas import (
    PaginationInfo, ParticipantFilters, ParticipantPage, ParticipantRow, ParticipantSummary,
    QuestionSlot, SortOrderEnum
)

MAX_QUESTION_SLOTS = int(os.environ.get("QUIZ_MAX_QUESTIONS", 50))
MAX_PAGE_LIMIT = 100
SORT_FIELDS = {"full_name", "phone_number", "correct_count", "user_id"}
DEFAULT_SORT_FIELD = "full_name"
UNKNOWN_NAME = "Unknown"
UNKNOWN_PHONE = "Not provided"


def participant_join_key():
    """Column of ``users`` that telemetry rows are matched against.

    Telemetry carries start numbers and the start number is stored as the
    user's display name, so the match is on ``users.name`` (exact).
    """
    return User.name


def _contains(column, value: str):
    """Case-insensitive substring match with `%` and `_` taken literally."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def _summary_query(db: Session, start_number: Optional[str] = None, group: Optional[str] = None):
    attempt_stats = db.query(
        QuizAttempt.user_id.label("user_id"),
        func.count(QuizAttempt.id).label("total_questions"),
        func.sum(case((QuizAttempt.is_correct == True, 1), else_=0)).label("quiz_points"),  # noqa: E712
    ).group_by(QuizAttempt.user_id).subquery()

    telemetry_stats = db.query(
        Telemetry.start_number.label("start_number"),
        func.min(Telemetry.group).label("group_name"),
        func.sum(Telemetry.points).label("telemetry_points"),
    ).group_by(Telemetry.start_number).subquery()

    quiz_points = func.coalesce(attempt_stats.c.quiz_points, 0)
    telemetry_points = func.coalesce(telemetry_stats.c.telemetry_points, 0)

    query = db.query(
        User.id.label("user_id"),
        User.name.label("start_number"),
        User.phone_number.label("phone_number"),
        telemetry_stats.c.group_name.label("group_name"),
        func.coalesce(attempt_stats.c.total_questions, 0).label("total_questions"),
        quiz_points.label("quiz_points"),
        telemetry_points.label("telemetry_points"),
        (quiz_points + telemetry_points).label("total_points"),
    ).outerjoin(
        attempt_stats, attempt_stats.c.user_id == User.id
    ).outerjoin(
        telemetry_stats, telemetry_stats.c.start_number == participant_join_key()
    )

    if start_number:
        query = query.filter(_contains(User.name, start_number))
    if group:
        query = query.filter(_contains(telemetry_stats.c.group_name, group))
    return query, attempt_stats, telemetry_stats


def _to_summary(row) -> ParticipantSummary:
    return ParticipantSummary(
        user_id=row.user_id,
        start_number=row.start_number,
        phone_number=row.phone_number,
        group_name=row.group_name,
        total_questions=int(row.total_questions or 0),
        quiz_points=int(row.quiz_points or 0),
        telemetry_points=int(row.telemetry_points or 0),
        total_points=int(row.total_points or 0),
    )


def compute_summaries(db: Session, start_number: Optional[str] = None, group: Optional[str] = None) -> List[ParticipantSummary]:
    """One summary per participant with at least one attempt or telemetry record.

    Ordered by total points (highest first), then start number.
    """
    query, attempt_stats, telemetry_stats = _summary_query(db, start_number=start_number, group=group)
    rows = query.filter(
        or_(attempt_stats.c.user_id.isnot(None), telemetry_stats.c.start_number.isnot(None))
    ).order_by(
        (func.coalesce(attempt_stats.c.quiz_points, 0) + func.coalesce(telemetry_stats.c.telemetry_points, 0)).desc(),
        User.name.asc(),
    ).all()
    return [_to_summary(row) for row in rows]


def get_participant_summary(db: Session, user: User) -> ParticipantSummary:
    query, _, _ = _summary_query(db)
    row = query.filter(User.id == user.id).first()
    if row is None:
        return ParticipantSummary(user_id=user.id, start_number=user.name, phone_number=user.phone_number)
    return _to_summary(row)


@dataclass
class ParticipantAnswers:
    user_id: str
    full_name: str
    phone_number: str
    correct_count: int = 0
    answers: Dict[int, QuestionSlot] = field(default_factory=dict)

    def slots(self, max_questions: int) -> List[QuestionSlot]:
        return [self.answers.get(number, QuestionSlot()) for number in range(1, max_questions + 1)]


def collect_participant_answers(db: Session, search: Optional[str] = None) -> List[ParticipantAnswers]:
    query = db.query(
        User.id.label("user_id"),
        User.name.label("full_name"),
        User.phone_number.label("phone_number"),
        QuizAttempt.answer.label("answer"),
        QuizAttempt.is_correct.label("is_correct"),
        Question.number.label("question_number"),
    ).select_from(QuizAttempt).outerjoin(
        User, User.id == QuizAttempt.user_id
    ).outerjoin(
        Question, Question.id == QuizAttempt.question_id
    )
    if search:
        query = query.filter(
            _contains(User.name, search) |
            _contains(User.phone_number, search)
        )

    participants: Dict[str, ParticipantAnswers] = {}
    for row in query.order_by(QuizAttempt.id.asc()).all():
        if not row.user_id:
            continue
        entry = participants.get(row.user_id)
        if entry is None:
            entry = ParticipantAnswers(
                user_id=row.user_id,
                full_name=row.full_name or UNKNOWN_NAME,
                phone_number=row.phone_number or UNKNOWN_PHONE,
            )
            participants[row.user_id] = entry
        if row.question_number is None or not row.answer:
            continue
        entry.answers[row.question_number] = QuestionSlot(answer=row.answer, correct=1 if row.is_correct else 0)
        if row.is_correct:
            entry.correct_count += 1
    return list(participants.values())


def _sort_value(entry: ParticipantAnswers, sort_by: str):
    value = getattr(entry, sort_by)
    return value.lower() if isinstance(value, str) else value


def list_participants(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    min_correct: Optional[int] = None,
    max_correct: Optional[int] = None,
    sort_by: str = DEFAULT_SORT_FIELD,
    sort_order: str = "asc",
    max_questions: int = MAX_QUESTION_SLOTS,
) -> ParticipantPage:
    page = max(1, page)
    limit = max(1, min(MAX_PAGE_LIMIT, limit))
    sort_field = sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT_FIELD
    order = SortOrderEnum.DESC if str(sort_order).lower() == SortOrderEnum.DESC.value else SortOrderEnum.ASC

    entries = collect_participant_answers(db, search=search)
    if min_correct is not None:
        entries = [e for e in entries if e.correct_count >= min_correct]
    if max_correct is not None:
        entries = [e for e in entries if e.correct_count <= max_correct]
    entries.sort(key=lambda e: _sort_value(e, sort_field), reverse=order == SortOrderEnum.DESC)

    total_items = len(entries)
    total_pages = math.ceil(total_items / limit)
    offset = (page - 1) * limit

    rows = [
        ParticipantRow(
            row_number=offset + index + 1,
            user_id=entry.user_id,
            full_name=entry.full_name,
            phone_number=entry.phone_number,
            correct_count=entry.correct_count,
            questions=entry.slots(max_questions),
        )
        for index, entry in enumerate(entries[offset:offset + limit])
    ]

    return ParticipantPage(
        users=rows,
        pagination=PaginationInfo(
            page=page,
            limit=limit,
            total_items=total_items,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
        filters=ParticipantFilters(
            search=search or "",
            min_correct=min_correct,
            max_correct=max_correct,
            sort_by=sort_field,
            sort_order=order,
        ),
    )
