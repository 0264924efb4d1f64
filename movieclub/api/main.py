"""
HTTP surface for the movie club lifecycle.

Identity comes from the X-Member-Id header set by the session layer in front
of this service; the API never authenticates members itself.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .schemas import (
    BoardResponse,
    ErrorResponse,
    HealthResponse,
    MemberCreateRequest,
    MemberResponse,
    MovieSubmitRequest,
    ProposalResponse,
    ReminderResponse,
    StateResponse,
    SuccessResponse,
    TransitionResponse,
    VettingRequest,
    VettingStatusResponse,
    VoteRequest,
)
from ..core import members
from ..core.board import get_board
from ..core.config import VERSION, debug_enabled, get_admin_token, get_cron_secret
from ..core.db import health_check, init_db
from ..core.errors import MemberNotFound, MovieClubError
from ..core.reminders import send_reminders
from ..core.schema import Member
from ..core.state import get_app_state, run_weekly_transition
from ..core.submission import submit_movie
from ..core.vetting import get_vetting_status, submit_vetting
from ..core.voting import (
    get_pending_votes_for_user,
    get_users_pending_vote_for_movie,
    get_watching_movies,
    submit_vote,
)
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Movie Club API",
    version=VERSION,
    description="Weekly movie club: submission, vetting, watching and scoring",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MovieClubError)
async def movie_club_error_handler(request: Request, exc: MovieClubError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.error_type} {exc.message}")
    body = ErrorResponse(error_type=exc.error_type, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


def current_member(x_member_id: Optional[str] = Header(None)) -> Member:
    """Resolve the calling member from the session-provided header."""
    if not x_member_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return members.get_member(x_member_id)
    except MemberNotFound:
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_cron_secret(authorization: Optional[str] = Header(None),
                        secret: Optional[str] = Query(None)):
    """Trigger endpoints are open unless CRON_SECRET is configured."""
    expected = get_cron_secret()
    if not expected:
        return
    if authorization == f"Bearer {expected}" or secret == expected:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


def require_admin(x_admin_token: Optional[str] = Header(None)):
    expected = get_admin_token()
    if expected is None:
        if debug_enabled():
            return
        raise HTTPException(status_code=403, detail="Member administration disabled")
    if x_admin_token != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    db_health = health_check()
    member_count = members.count_members() if db_health else 0

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        member_count=member_count
    )


@app.get("/state", response_model=StateResponse)
def state_endpoint(member: Member = Depends(current_member)):
    state = get_app_state()
    return StateResponse(phase=state.phase, week=state.week)


@app.get("/members", response_model=List[MemberResponse])
def list_members_endpoint():
    """List members without their PINs."""
    return [MemberResponse.model_validate(m) for m in members.list_members()]


@app.post("/members", response_model=MemberResponse, dependencies=[Depends(require_admin)])
def create_member_endpoint(request: MemberCreateRequest):
    member = members.create_member(request.name, request.pin)
    return MemberResponse.model_validate(member)


@app.get("/movies", response_model=BoardResponse)
def board_endpoint(member: Member = Depends(current_member)):
    return BoardResponse(**get_board(member.id))


@app.post("/movies", response_model=ProposalResponse)
def submit_movie_endpoint(request: MovieSubmitRequest, member: Member = Depends(current_member)):
    proposal = submit_movie(
        member.id,
        request.title,
        cover_url=request.cover_url,
        description=request.description,
        year=request.year
    )
    return ProposalResponse.model_validate(proposal)


@app.get("/vetting", response_model=VettingStatusResponse)
def vetting_status_endpoint(member: Member = Depends(current_member)):
    status = get_vetting_status(member.id)
    movie = status["movie"]
    return VettingStatusResponse(
        movie=ProposalResponse.model_validate(movie) if movie else None,
        has_vetted=status["has_vetted"],
        progress=status["progress"]
    )


@app.post("/vetting", response_model=SuccessResponse)
def submit_vetting_endpoint(request: VettingRequest, member: Member = Depends(current_member)):
    submit_vetting(member.id, request.seen)
    return SuccessResponse()


@app.get("/watching", response_model=List[ProposalResponse])
def watching_endpoint(member: Member = Depends(current_member)):
    return [ProposalResponse.model_validate(p) for p in get_watching_movies()]


@app.get("/votes/pending", response_model=List[ProposalResponse])
def pending_votes_endpoint(member: Member = Depends(current_member)):
    return [ProposalResponse.model_validate(p) for p in get_pending_votes_for_user(member.id)]


@app.get("/votes/{proposal_id}/pending-members", response_model=List[MemberResponse])
def pending_voters_endpoint(proposal_id: str, member: Member = Depends(current_member)):
    return [MemberResponse.model_validate(m) for m in get_users_pending_vote_for_movie(proposal_id)]


@app.post("/votes", response_model=ProposalResponse)
def submit_vote_endpoint(request: VoteRequest, member: Member = Depends(current_member)):
    proposal = submit_vote(member.id, request.proposal_id, request.score, request.comment)
    return ProposalResponse.model_validate(proposal)


@app.post("/cron/weekly-transition", response_model=TransitionResponse,
          dependencies=[Depends(require_cron_secret)])
def weekly_transition_endpoint():
    result = run_weekly_transition()
    return TransitionResponse(**result.to_dict())


@app.post("/cron/reminders", response_model=ReminderResponse,
          dependencies=[Depends(require_cron_secret)])
def reminders_endpoint():
    return ReminderResponse(**send_reminders())
