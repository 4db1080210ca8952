"""FastAPI server for linkhop challenge navigation."""

import asyncio
import logging
import os
import uuid

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from typing import Optional

logger = logging.getLogger(__name__)

from core.config import CONTEXT_BACKUP_KEY, FORM_AUTOSAVE_KEY
from core.interfaces import ContextStore
from core.models import Challenge, ChallengeAttempt, ChallengeState, NavigationEvent
from core.models import NAVIGATE_TO_CHALLENGE, NAVIGATE_NEXT, NAVIGATE_PREVIOUS, RESTORE_CONTEXT
from core.navigation import NavigationOrchestrator
from core.errors import NavigationErrorKind
from core.recovery import ErrorRecoveryCoordinator

from server.file_storage import FileStorage
from server.postgres_storage import PostgresStorage


# Pydantic models for API
class SessionRequest(BaseModel):
    user_id: str = "default"
    challenges: list[dict]
    states: list[dict] = []
    attempts: list[dict] = []
    viewer_id: Optional[str] = None


class NavigationRequest(BaseModel):
    user_id: str = "default"
    type: str
    challenge_id: Optional[str] = None
    state: Optional[dict] = None
    context: Optional[dict] = None
    context_id: Optional[str] = None


class FormDataRequest(BaseModel):
    user_id: str = "default"
    form_data: dict


class ErrorReportRequest(BaseModel):
    user_id: str = "default"
    error: str
    user_action: str


class SessionResponse(BaseModel):
    success: bool
    session_id: str
    current_challenge_id: str
    available_challenges: list[str]


class OutcomeResponse(BaseModel):
    success: bool
    challenge_id: Optional[str]
    error: Optional[str]
    error_message: Optional[str]
    fallback_options: list[str]
    error_context: Optional[dict]
    auto_recovered: bool
    restored_form_data: Optional[dict]


class AvailabilityResponse(BaseModel):
    available_count: int
    can_navigate: bool
    available_challenges: list[str]


# Events that move the cursor and should be backed up
CURSOR_EVENTS = {NAVIGATE_TO_CHALLENGE, NAVIGATE_NEXT, NAVIGATE_PREVIOUS, RESTORE_CONTEXT}


# Global state (in production, use proper DI)
storage: ContextStore = None
orchestrators: dict[str, NavigationOrchestrator] = {}
session_locks: dict[str, asyncio.Lock] = {}  # Serialize navigation per user

# Session tracking
user_sessions: dict[str, str] = {}  # user_id -> session_id


def new_session(user_id: str) -> str:
    """Create a new session for a user."""
    user_sessions[user_id] = str(uuid.uuid4())[:8]
    return user_sessions[user_id]


def log_event(event: str, user_id: str, **data) -> None:
    """Log an event to the database."""
    if storage and hasattr(storage, 'log_event'):
        storage.log_event(event, user_id, user_sessions.get(user_id), **data)


def create_storage() -> ContextStore:
    # Use file storage by default, set LINKHOP_STORAGE=postgres to use PostgreSQL
    storage_type = os.environ.get('LINKHOP_STORAGE', 'file')
    if storage_type == 'postgres':
        logger.info("Using PostgreSQL storage")
        return PostgresStorage()
    logger.info("Using file storage")
    return FileStorage()


def get_storage() -> ContextStore:
    global storage
    if storage is None:
        storage = create_storage()
    return storage


def get_orchestrator(user_id: str) -> NavigationOrchestrator:
    """Look up the navigation session for a user."""
    if user_id not in orchestrators:
        raise HTTPException(status_code=404, detail=f"No navigation session for user {user_id}")
    return orchestrators[user_id]


def get_lock(user_id: str) -> asyncio.Lock:
    if user_id not in session_locks:
        session_locks[user_id] = asyncio.Lock()
    return session_locks[user_id]


async def backup_context(user_id: str, orchestrator: NavigationOrchestrator) -> None:
    """Persist the live context so a lost session can be picked up again."""
    context = orchestrator.context.to_dict()
    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            lambda: get_storage().save_value(CONTEXT_BACKUP_KEY, context, user_id)
        )
    except Exception as e:
        logger.error(f"Context backup failed for {user_id}: {type(e).__name__}: {e}")
        orchestrator.report_failure(NavigationErrorKind.STATE_PRESERVATION_FAILURE, 'backup_context')
        await orchestrator.settle()


app = FastAPI(title="Linkhop API", description="Challenge navigation and recovery API")


@app.on_event("startup")
async def startup():
    """Initialize storage on startup."""
    get_storage()


@app.get("/")
async def root():
    """Health check."""
    return {"service": "linkhop", "status": "ok", "sessions": len(orchestrators)}


@app.post("/api/session", response_model=SessionResponse)
async def init_session(request: SessionRequest):
    """Create or refresh a user's navigation session with a challenge pool."""
    try:
        challenges = [Challenge.from_dict(c) for c in request.challenges]
        states = [ChallengeState.from_dict(s) for s in request.states]
        attempts = [ChallengeAttempt.from_dict(a) for a in request.attempts]
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid session data: {type(e).__name__}: {e}")

    async with get_lock(request.user_id):
        orchestrator = orchestrators.get(request.user_id)
        if orchestrator is None:
            coordinator = ErrorRecoveryCoordinator(store=get_storage(), user_id=request.user_id)
            orchestrator = NavigationOrchestrator(coordinator=coordinator)
            orchestrators[request.user_id] = orchestrator
        orchestrator.initialize(challenges, states, attempts, request.viewer_id or '')
        context = orchestrator.context

    session_id = new_session(request.user_id)
    log_event('session.init', request.user_id,
              challenge_count=len(challenges),
              available_count=len(context.available_challenges))

    return SessionResponse(
        success=True,
        session_id=session_id,
        current_challenge_id=context.current_challenge_id,
        available_challenges=context.available_challenges
    )


@app.post("/api/navigate", response_model=OutcomeResponse)
async def navigate(request: NavigationRequest):
    """Apply one navigation event and return its outcome."""
    orchestrator = get_orchestrator(request.user_id)
    event = NavigationEvent(
        request.type,
        challenge_id=request.challenge_id,
        state=request.state,
        context=request.context,
        context_id=request.context_id
    )

    async with get_lock(request.user_id):
        outcome = orchestrator.handle_event(event)
        # Let auto-recovery finish so the response carries the final outcome
        await orchestrator.settle()
        if outcome.success and not outcome.auto_recovered and event.type in CURSOR_EVENTS:
            await backup_context(request.user_id, orchestrator)

    log_event('navigate', request.user_id,
              type=event.type,
              success=outcome.success,
              challenge_id=outcome.challenge_id,
              error=outcome.error.value if outcome.error else None)

    return OutcomeResponse(**outcome.to_dict())


@app.post("/api/report-error", response_model=OutcomeResponse)
async def report_error(request: ErrorReportRequest):
    """Classify a failure seen by the client (content load, URL sync, ...) and try to recover."""
    orchestrator = get_orchestrator(request.user_id)
    async with get_lock(request.user_id):
        outcome = orchestrator.report_failure(request.error, request.user_action)
        await orchestrator.settle()
    return OutcomeResponse(**outcome.to_dict())


@app.get("/api/context")
async def get_context(user_id: str = "default"):
    """Get the live navigation context."""
    return get_orchestrator(user_id).context.to_dict()


@app.get("/api/state")
async def get_current_state(user_id: str = "default"):
    """Get the eligibility state of the current challenge."""
    state = get_orchestrator(user_id).current_state()
    return {"state": state.to_dict() if state else None}


@app.get("/api/availability", response_model=AvailabilityResponse)
async def get_availability(user_id: str = "default"):
    """How many challenges can still be navigated to."""
    orchestrator = get_orchestrator(user_id)
    available = orchestrator.filter_eligible()
    return AvailabilityResponse(
        available_count=len(available),
        can_navigate=len(available) > 0,
        available_challenges=available
    )


@app.get("/api/errors/stats")
async def get_error_stats(user_id: str = "default"):
    """Rolling navigation error statistics for a user."""
    return get_orchestrator(user_id).error_statistics()


@app.post("/api/form-data")
async def save_form_data(request: FormDataRequest):
    """Carry form data across navigation and auto-save it for recovery."""
    orchestrator = get_orchestrator(request.user_id)
    orchestrator.preserve_form_data(request.form_data)
    try:
        get_storage().save_value(FORM_AUTOSAVE_KEY, request.form_data, request.user_id)
    except Exception as e:
        logger.error(f"Form auto-save failed for {request.user_id}: {type(e).__name__}: {e}")
        outcome = orchestrator.report_failure(NavigationErrorKind.STATE_PRESERVATION_FAILURE, 'save_form_data')
        await orchestrator.settle()
        return {"success": False, "outcome": outcome.to_dict()}
    return {"success": True}


@app.post("/api/reset")
async def reset_session(user_id: str = "default"):
    """Reset navigation state for a user."""
    orchestrator = get_orchestrator(user_id)
    async with get_lock(user_id):
        orchestrator.reset()
    log_event('session.reset', user_id)
    return {"success": True}


def create_app():
    """Factory function for creating the app (useful for testing)."""
    return app
