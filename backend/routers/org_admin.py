from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import csv
import io
from openpyxl import Workbook

from database import get_db
from errors import InvalidUploadError
from models import AdminLog, User
from participant_service import change_start_number
from quiz_service import list_questions, question_rows_from_table, replace_questions
from results_service import compute_summaries, list_participants
from schemas import (
    AdminLogResponse,
    MessageResponse,
    ParticipantPage,
    QuestionResponse,
    QuestionSyncResponse,
    ResultsResponse,
    StartNumberUpdate,
    TelemetrySyncResponse,
)
from security import require_admin
from tabular import decode_table
from telemetry_service import replace_telemetry, telemetry_rows_from_table
from utils import log_admin_action

router = APIRouter()

RESULTS_EXPORT_HEADERS = [
    "Rank", "Start Number", "Phone Number", "Group", "Questions Answered",
    "Quiz Points", "Telemetry Points", "Total Points"
]


async def _read_upload(file: Optional[UploadFile], delimiter: str):
    if file is None or not file.filename:
        raise InvalidUploadError("No CSV file uploaded")
    contents = await file.read()
    return decode_table(file.filename, contents, delimiter=delimiter)


@router.get("/org/questions", response_model=List[QuestionResponse])
def get_questions(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [QuestionResponse.model_validate(q) for q in list_questions(db)]


@router.post("/org/sync", response_model=QuestionSyncResponse)
async def sync_questions(
    file: Optional[UploadFile] = File(None, alias="csv"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    table = await _read_upload(file, delimiter=",")
    created = replace_questions(db, question_rows_from_table(table))
    log_admin_action(db, admin, "sync_questions", method="POST", path="/org/sync", meta={"questions": created})
    return QuestionSyncResponse(message="Questions synchronized successfully", questions_created=created)


@router.post("/org/telemetry", response_model=TelemetrySyncResponse)
async def sync_telemetry(
    file: Optional[UploadFile] = File(None, alias="csv"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    table = await _read_upload(file, delimiter=";")
    rows = telemetry_rows_from_table(table)
    stored = replace_telemetry(db, rows)
    log_admin_action(db, admin, "sync_telemetry", method="POST", path="/org/telemetry", meta={"parsed": len(rows), "stored": stored})
    return TelemetrySyncResponse(message="Results synchronized successfully", results_created=len(rows), results_stored=stored)


@router.get("/org/results", response_model=ResultsResponse)
def get_results(
    start_number: Optional[str] = None,
    group: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ResultsResponse(results=compute_summaries(db, start_number=start_number, group=group))


@router.get("/org/users", response_model=ParticipantPage)
def get_users(
    page: int = Query(1),
    limit: int = Query(10),
    search: Optional[str] = None,
    min_correct: Optional[int] = Query(None, alias="minCorrect"),
    max_correct: Optional[int] = Query(None, alias="maxCorrect"),
    sort_by: str = Query("full_name", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_participants(
        db,
        page=page,
        limit=limit,
        search=search,
        min_correct=min_correct,
        max_correct=max_correct,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.patch("/org/user/{user_id}", response_model=MessageResponse)
def update_user_number(
    user_id: str,
    payload: StartNumberUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    change_start_number(db, user_id, payload.new_number)
    log_admin_action(db, admin, "change_start_number", method="PATCH", path=f"/org/user/{user_id}", meta={"user_id": user_id, "new_number": payload.new_number})
    return MessageResponse(message="User number updated successfully")


@router.get("/org/export/results")
def export_results(
    format: str = "csv",
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    summaries = compute_summaries(db)
    rows = [
        [i + 1, s.start_number, s.phone_number or "", s.group_name or "", s.total_questions,
         s.quiz_points, s.telemetry_points, s.total_points]
        for i, s in enumerate(summaries)
    ]

    if format == "xlsx":
        wb = Workbook()
        ws = wb.active
        ws.title = "Results"
        ws.append(RESULTS_EXPORT_HEADERS)
        for row in rows:
            ws.append(row)

        output = io.BytesIO()
        wb.save(output)
        output.seek(0)

        return StreamingResponse(
            output,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": "attachment; filename=results.xlsx"}
        )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(RESULTS_EXPORT_HEADERS)
    writer.writerows(rows)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=results.csv"}
    )


@router.get("/org/logs", response_model=List[AdminLogResponse])
def get_admin_logs(
    limit: int = Query(50, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    logs = db.query(AdminLog).order_by(AdminLog.created_at.desc(), AdminLog.id.desc()).limit(limit).all()
    return [AdminLogResponse.model_validate(log) for log in logs]
