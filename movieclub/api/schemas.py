"""
Request and response models for the movie club API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..core.schema import Phase, ProposalStatus


class MovieSubmitRequest(BaseModel):
    title: str
    cover_url: Optional[str] = None
    description: Optional[str] = None
    year: Optional[int] = None

    @field_validator('title')
    @classmethod
    def title_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('title cannot be empty')
        return v


class VettingRequest(BaseModel):
    seen: bool


class VoteRequest(BaseModel):
    proposal_id: str
    # Type and range are checked by the voting handler so it reports INVALID_SCORE
    score: Any
    comment: Optional[str] = None


class MemberCreateRequest(BaseModel):
    name: str
    pin: str

    @field_validator('name')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('name cannot be empty')
        return v.strip()


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    proposed_by: str
    status: ProposalStatus
    description: Optional[str] = None
    year: Optional[int] = None
    cover_url: Optional[str] = None
    week_number: Optional[int] = None
    vetting_start_date: Optional[datetime] = None
    average_score: Optional[float] = None
    created_at: Optional[datetime] = None


class StateResponse(BaseModel):
    phase: Phase
    week: int


class VettingProgress(BaseModel):
    responded: int
    total: int


class VettingStatusResponse(BaseModel):
    movie: Optional[ProposalResponse] = None
    has_vetted: bool = False
    progress: Optional[VettingProgress] = None


class BoardResponse(BaseModel):
    state: StateResponse
    my_submission: Optional[Dict[str, Any]] = None
    stats: Dict[str, int]
    queue: List[Dict[str, Any]]
    history: List[Dict[str, Any]]


class TransitionResponse(BaseModel):
    success: bool = True
    phase: Phase
    previous_week: int
    current_week: int
    promoted_proposal_id: Optional[str] = None


class ReminderResponse(BaseModel):
    success: bool = True
    vetting_reminders: int
    vote_reminders: int


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    member_count: int


class ErrorResponse(BaseModel):
    error_type: str
    message: str
    timestamp: datetime = None
    details: Optional[Dict[str, Any]] = None

    def __init__(self, **data):
        super().__init__(timestamp=datetime.now(), **data)
