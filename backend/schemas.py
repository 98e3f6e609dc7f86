from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime


class UserRoleEnum(str, Enum):
    USER = "user"
    ADMIN = "admin"


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _enum_value(value):
    return value.value if isinstance(value, Enum) else value


# User Schemas
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRoleEnum
    created_at: Optional[datetime] = None

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, v):
        return _enum_value(v)


class StartNumberRegister(BaseModel):
    start_number: int = Field(..., ge=1)


class StartNumberUpdate(BaseModel):
    new_number: str = Field(..., min_length=1, max_length=50)

    @field_validator("new_number", mode="before")
    @classmethod
    def coerce_new_number(cls, v):
        if isinstance(v, int):
            return str(v)
        return v.strip() if isinstance(v, str) else v


class MessageResponse(BaseModel):
    message: str


# Question Schemas
class AnswerSubmit(BaseModel):
    question_id: int
    answer: str


class QuestionView(BaseModel):
    id: int
    number: int
    question: str
    options: List[str]


class QuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: str
    number: int
    question_text: str
    correct_answer: str
    incorrect_answer_1: str
    incorrect_answer_2: str
    incorrect_answer_3: str
    created_at: Optional[datetime] = None


class QuestionRow(BaseModel):
    """One question as read from an organizer upload, before coercion."""
    org_id: str
    number: str
    question: str
    correct_answer: str
    incorrect_answer_1: str = ""
    incorrect_answer_2: str = ""
    incorrect_answer_3: str = ""


class TelemetryRow(BaseModel):
    start_number: str = ""
    group: str = ""
    points: str = ""


class QuestionSyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    questions_created: int = Field(alias="questionsCreated")


class TelemetrySyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    results_created: int = Field(alias="resultsCreated")
    results_stored: int = Field(alias="resultsStored")


# Results Schemas
class ParticipantSummary(BaseModel):
    user_id: str
    start_number: str
    phone_number: Optional[str] = None
    group_name: Optional[str] = None
    total_questions: int = 0
    quiz_points: int = 0
    telemetry_points: int = 0
    total_points: int = 0


class ResultsResponse(BaseModel):
    results: List[ParticipantSummary]


class QuestionSlot(BaseModel):
    answer: str = ""
    correct: int = 0


class ParticipantRow(BaseModel):
    row_number: int
    user_id: str
    full_name: str
    phone_number: str
    correct_count: int
    questions: List[QuestionSlot]


class PaginationInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    total_items: int = Field(alias="totalItems")
    total_pages: int = Field(alias="totalPages")
    has_next: bool = Field(alias="hasNext")
    has_prev: bool = Field(alias="hasPrev")


class ParticipantFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search: str = ""
    min_correct: Optional[int] = Field(default=None, alias="minCorrect")
    max_correct: Optional[int] = Field(default=None, alias="maxCorrect")
    sort_by: str = Field(default="full_name", alias="sortBy")
    sort_order: SortOrderEnum = Field(default=SortOrderEnum.ASC, alias="sortOrder")


class ParticipantPage(BaseModel):
    users: List[ParticipantRow]
    pagination: PaginationInfo
    filters: ParticipantFilters


# Admin Schemas
class AdminLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_id: Optional[str] = None
    admin_name: str
    action: str
    method: Optional[str] = None
    path: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
