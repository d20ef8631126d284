"""
Backend API: lineup submission, leaderboard reads and admin rescoring.
"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# Load .env and ensure backend/src is on path
backend_dir = Path(__file__).resolve().parent.parent.parent
load_dotenv(backend_dir / ".env")
sys.path.insert(0, str(backend_dir / "src"))

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import Config
from database.supabase_client import SupabaseClient
from opendota_api.client import OpenDotaAPIClient
from refresh.leaderboard import DayAggregator
from refresh.lineups import (
    AuthRequiredError,
    InvalidArgumentError,
    LineupError,
    LineupService,
    NotFoundError,
    PermissionDeniedError,
)
from refresh.players import PlayerNameResolver
from utils.lock_gate import is_valid_date_key

# Lazy init so we don't require Supabase in tests
_db: SupabaseClient | None = None
_api_client: OpenDotaAPIClient | None = None
_aggregator: DayAggregator | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the provider client opened by get_aggregator on shutdown."""
    global _api_client, _aggregator
    yield
    if _api_client is not None:
        await _api_client.close()
    _api_client = None
    _aggregator = None


app = FastAPI(title="Fantasy Leaderboard API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db() -> SupabaseClient:
    global _db
    if _db is None:
        _db = SupabaseClient(Config())
    return _db


def get_lineup_service(db: SupabaseClient = Depends(get_db)) -> LineupService:
    return LineupService(db)


def get_aggregator(db: SupabaseClient = Depends(get_db)) -> DayAggregator:
    global _api_client, _aggregator
    if _aggregator is None:
        _api_client = OpenDotaAPIClient(db.config)
        _aggregator = DayAggregator(db, PlayerNameResolver(_api_client, db))
    return _aggregator


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    db: SupabaseClient = Depends(get_db),
) -> Optional[str]:
    """User id for a `Bearer <access token>` header, or None when absent or invalid."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return db.get_user_id(token.strip())


class LineupSubmission(BaseModel):
    # Shape checks live in LineupService so every rejection is the same 400
    tid: str
    date_key: Any = None
    captain: Any = None
    cores: Any = None
    supports: Any = None
    team_card: Any = None
    admin_override: bool = False
    owner_id: Optional[str] = None


@app.exception_handler(LineupError)
async def lineup_error_handler(request: Request, exc: LineupError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def _check_day(date_key: str):
    if not is_valid_date_key(date_key):
        raise InvalidArgumentError("date_key must be 8 digits (YYYYMMDD)")


@app.post("/api/v1/lineups")
def submit_lineup(
    body: LineupSubmission,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: LineupService = Depends(get_lineup_service),
):
    """Create or overwrite the caller's lineup for a day. Returns {ok, locked}."""
    return service.submit_lineup(
        user_id,
        body.tid,
        body.date_key,
        body.captain,
        body.cores,
        body.supports,
        body.team_card,
        admin_override=body.admin_override,
        owner_id=body.owner_id,
    )


@app.post("/api/v1/tournaments/{tid}/days/{date_key}/rescore")
async def rescore_day(
    tid: str,
    date_key: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: SupabaseClient = Depends(get_db),
    aggregator: DayAggregator = Depends(get_aggregator),
):
    """Admin only: recompute and republish a day's leaderboard."""
    if not user_id:
        raise AuthRequiredError("Sign in to rescore")
    if not db.is_admin(user_id):
        raise PermissionDeniedError("Admin rights required")
    _check_day(date_key)
    if not db.get_tournament(tid):
        raise NotFoundError(f"Unknown tournament {tid!r}")

    entries = await aggregator.score_day(tid, date_key)
    return {"count": len(entries)}


@app.get("/api/v1/tournaments/{tid}/days/{date_key}/leaderboard")
def get_leaderboard(
    tid: str,
    date_key: str,
    aggregator: DayAggregator = Depends(get_aggregator),
):
    _check_day(date_key)
    entries = aggregator.get_leaderboard(tid, date_key)
    return {"entries": [e.model_dump(mode="json") for e in entries]}


@app.get("/health")
def health():
    return {"status": "ok"}
