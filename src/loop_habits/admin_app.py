from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from loop_habits.analytics import compute_status
from loop_habits.badges import BADGES
from loop_habits.codec import InvalidBackupError, state_from_dict, state_to_dict
from loop_habits.config import load_settings
from loop_habits.db import Database
from loop_habits.logging_setup import setup_logging
from loop_habits.models import AppState
from loop_habits.service import ToggleOutcome, toggle_completion
from loop_habits.session import AppSession
from loop_habits.time_utils import now_local, parse_hhmm

logger = logging.getLogger(__name__)


def _require_auth(request: Request, token: str | None) -> None:
    if not token:
        return
    header = request.headers.get("x-admin-token")
    query = request.query_params.get("token")
    if header == token or query == token:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


class ToggleRequest(BaseModel):
    day: date | None = Field(default=None, alias="date")
    at: str | None = None


def _status_payload(state: AppState, today: date) -> dict[str, Any]:
    view = compute_status(state, today)
    lp = view.progress
    return {
        "name": view.name,
        "level": lp.level,
        "title": lp.title,
        "points": lp.points,
        "next_level_points": lp.next_tier_min,
        "progress_ratio": lp.progress_ratio,
        "today": {"completed": view.today_completed, "due": view.today_due},
        "badges": {"unlocked": view.badges_unlocked, "total": view.badges_total},
        "categories": view.categories,
        "week": [
            {"date": p.day.isoformat(), "completed": p.completed, "sleep_hours": p.sleep_hours}
            for p in view.week
        ],
        "habits": [
            {
                "id": s.habit.id,
                "title": s.habit.title,
                "current_streak": s.current_streak,
                "longest_streak": s.longest_streak,
                "completion_rate": s.completion_rate,
                "completed_today": s.completed_today,
                "due_today": s.due_today,
            }
            for s in view.habits
        ],
    }


def build_admin_app(session: AppSession, admin_token: str | None, tz: str = "Europe/Oslo") -> FastAPI:
    app = FastAPI(title="Loop Habits Admin", version="1.0.0")

    @app.get("/api/state")
    async def api_state(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return state_to_dict(session.state)

    @app.put("/api/state")
    async def api_import_state(request: Request, payload: dict[str, Any]) -> dict[str, Any]:
        _require_auth(request, admin_token)
        try:
            state = state_from_dict(payload)
        except InvalidBackupError as exc:
            logger.warning("rejected import: %s", exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        session.replace(state)
        return {"ok": True, "habits": len(state.habits), "logs": len(state.logs)}

    @app.get("/api/status")
    async def api_status(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return _status_payload(session.state, now_local(tz).date())

    @app.get("/api/badges")
    async def api_badges(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        unlocked = set(session.state.profile.unlocked_badges)
        return {
            "badges": [
                {
                    "id": b.id,
                    "name": b.name,
                    "description": b.description,
                    "icon": b.icon,
                    "color": b.color,
                    "unlocked": b.id in unlocked,
                }
                for b in BADGES
            ]
        }

    @app.post("/api/habits/{habit_id}/toggle")
    async def api_toggle(habit_id: str, request: Request, payload: ToggleRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        now: datetime = now_local(tz)
        day = payload.day or now.date()
        try:
            at = parse_hhmm(payload.at) if payload.at else now.time()
        except ValueError as exc:
            raise HTTPException(status_code=422, detail="'at' must be HH:MM") from exc

        def transition(state: AppState) -> tuple[AppState, ToggleOutcome]:
            outcome = toggle_completion(state, habit_id, day, at=at)
            return outcome.state, outcome

        outcome = session.apply(transition)
        if not outcome.found:
            raise HTTPException(status_code=404, detail="Habit not found")
        return {
            "completed": outcome.completed,
            "points_delta": outcome.points_delta,
            "streak": outcome.streak,
            "streak_bonus": outcome.streak_bonus,
            "level": outcome.new_level,
            "leveled_up": outcome.leveled_up,
            "new_badges": [b.id for b in outcome.new_badges],
            "points": outcome.state.profile.points,
        }

    return app


def run_admin() -> None:
    setup_logging()
    settings = load_settings(require_telegram=False)
    session = AppSession(Database(settings.database_path))
    app = build_admin_app(session, settings.admin_panel_token, tz=settings.tz)
    uvicorn.run(app, host=settings.admin_host, port=settings.admin_port)
