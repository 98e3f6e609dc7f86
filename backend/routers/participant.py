from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models import User
from participant_service import register_start_number
from quiz_service import get_question_for_participant, record_answer
from results_service import get_participant_summary
from schemas import (
    AnswerSubmit,
    MessageResponse,
    ParticipantSummary,
    QuestionView,
    StartNumberRegister,
    UserResponse,
)
from security import require_registered_user, require_user

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(require_user)):
    return UserResponse.model_validate(user)


@router.post("/register", response_model=UserResponse)
def register(payload: StartNumberRegister, user: User = Depends(require_user), db: Session = Depends(get_db)):
    user = register_start_number(db, user, payload.start_number)
    return UserResponse.model_validate(user)


@router.get("/questions/{org_id}", response_model=QuestionView)
def get_question(org_id: str, user: User = Depends(require_registered_user), db: Session = Depends(get_db)):
    return get_question_for_participant(db, user.id, org_id)


@router.post("/answer", response_model=MessageResponse)
def submit_answer(payload: AnswerSubmit, user: User = Depends(require_user), db: Session = Depends(get_db)):
    record_answer(db, user.id, payload.question_id, payload.answer)
    return MessageResponse(message="Answer recorded")


@router.get("/results/me", response_model=ParticipantSummary)
def get_my_results(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return get_participant_summary(db, user)
