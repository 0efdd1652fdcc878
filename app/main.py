"""FastAPI web application for the personalised wellness tips experience"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
import json
import logging
import os
from pathlib import Path
import re
import sqlite3
from typing import Any, Literal
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.models.gateway import GatewayError, GatewayErrorKind
from app.models.wellness import MAX_AGE, MIN_AGE, Gender, UserProfile, WellnessGoal
from app.services.gemini import create_wellness_llm
from app.services.storage import InMemoryKeyValueStorage, KeyValueStorage, SQLiteKeyValueStorage
from app.services.tip_client import HTTPProxyTipTransport, InProcessTipTransport, TipClient
from app.services.tip_flow import ensure_tip_details, refresh_tips, toggle_favorite
from app.services.tip_gateway import WellnessTipGateway
from app.services.wellness_state import SessionRegistry, WellnessState
from app.utils.text import markdown_to_plain_text, split_paragraphs

app = FastAPI(title="Wellness Tips")

TEMPLATE_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.globals.update(now=lambda: datetime.now(timezone.utc))
templates.env.filters["markdown_to_text"] = markdown_to_plain_text
templates.env.filters["paragraphs"] = split_paragraphs

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/generate-wellness-tips"
CLIENT_COOKIE = "wellness_client"
CLIENT_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
_CLIENT_ID_RE = re.compile(r"[0-9a-f]{32}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.middleware("http")
async def assign_client_id(request: Request, call_next):
    """Identify the browser with a long-lived cookie, the key for its local storage."""

    client_id = request.cookies.get(CLIENT_COOKIE) or ""
    is_new = not _CLIENT_ID_RE.fullmatch(client_id)
    if is_new:
        client_id = uuid.uuid4().hex
    request.state.client_id = client_id

    response = await call_next(request)
    if is_new:
        response.set_cookie(
            CLIENT_COOKIE,
            client_id,
            max_age=CLIENT_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return response


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def _open_storage() -> KeyValueStorage:
    """Resolve the browser storage backend (SQLite, in-memory when unavailable)."""

    try:
        return SQLiteKeyValueStorage(db_path=os.getenv("WELLNESS_DB_PATH"))
    except (sqlite3.Error, OSError):
        logger.exception("SQLite storage init failed; falling back to in-memory.")
        return InMemoryKeyValueStorage()


@lru_cache(maxsize=1)
def _cached_session_registry() -> SessionRegistry:
    ttl = float(os.getenv("WELLNESS_SESSION_TTL", "3600"))
    return SessionRegistry(storage=_open_storage(), ttl_seconds=ttl)


async def get_session_registry() -> SessionRegistry:
    """FastAPI dependency returning the registry that owns every browser session."""

    return _cached_session_registry()


async def get_wellness_state(
    request: Request,
    registry: SessionRegistry = Depends(get_session_registry),
) -> WellnessState:
    """FastAPI dependency returning the calling browser's session state."""

    return registry.open(request.state.client_id)


@lru_cache(maxsize=1)
def _cached_tip_gateway() -> WellnessTipGateway:
    return WellnessTipGateway(llm=create_wellness_llm())


@lru_cache(maxsize=1)
def _cached_tip_client() -> TipClient:
    proxy_url = os.getenv("WELLNESS_PROXY_URL")
    if proxy_url:
        return TipClient(transport=HTTPProxyTipTransport(proxy_url))
    return TipClient(transport=InProcessTipTransport(_cached_tip_gateway()))


async def get_tip_gateway() -> WellnessTipGateway:
    """FastAPI dependency returning the shared server-side gateway."""

    try:
        return _cached_tip_gateway()
    except (RuntimeError, ValueError) as exc:
        logger.exception("Tip gateway initialisation failed", extra={"event": "gateway.init"})
        raise GatewayError(GatewayErrorKind.CONFIGURATION, str(exc)) from exc


async def get_tip_client() -> TipClient:
    """FastAPI dependency returning the client the views generate tips with."""

    try:
        return _cached_tip_client()
    except (RuntimeError, ValueError) as exc:
        logger.exception("Tip client initialisation failed", extra={"event": "gateway.init"})
        raise GatewayError(GatewayErrorKind.CONFIGURATION, str(exc)) from exc


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class TipGatewayRequest(BaseModel):
    """JSON body accepted by the tip proxy endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["generate", "details"] = "generate"
    age: int | None = None
    gender: str | None = None
    goal: str | None = None
    tip_title: str | None = Field(default=None, alias="tipTitle")


class ProfileForm(BaseModel):
    """Profile intake form submitted from the home page."""

    age: int = Field(..., ge=MIN_AGE, le=MAX_AGE, description="Age in whole years.")
    gender: Gender
    goal: WellnessGoal

    def to_profile(self) -> UserProfile:
        return UserProfile(age=self.age, gender=self.gender, goal=self.goal)


def _form_errors(exc: ValidationError) -> dict[str, str]:
    messages = {
        "age": f"Enter an age between {MIN_AGE} and {MAX_AGE}.",
        "gender": "Select your gender.",
        "goal": "Select a wellness goal.",
    }
    errors: dict[str, str] = {}
    for error in exc.errors():
        field_name = str(error["loc"][0]) if error.get("loc") else "form"
        errors.setdefault(field_name, messages.get(field_name, error["msg"]))
    return errors


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

def _gateway_error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(exc.as_dict(), status_code=exc.status_code)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error(
        "Error in generate-wellness-tips: %s",
        exc.message,
        extra={"event": "gateway.error", "kind": exc.kind.value},
    )
    return _gateway_error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render the not-found page for unknown pages; keep JSON errors for the API."""

    if exc.status_code == 404 and not request.url.path.startswith("/api/"):
        return templates.TemplateResponse(
            request,
            "not_found.html",
            {"title": "Page not found", "path": request.url.path},
            status_code=404,
        )
    return await http_exception_handler(request, exc)


# ---------------------------------------------------------------------------
# Gateway proxy
# ---------------------------------------------------------------------------

@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.options(PROXY_PATH)
async def generate_wellness_tips_preflight() -> Response:
    return Response(status_code=200)


@app.post(PROXY_PATH)
async def generate_wellness_tips(
    request: Request,
    gateway: WellnessTipGateway = Depends(get_tip_gateway),
) -> JSONResponse:
    """Proxy a generate/details request to the language model and return its JSON."""

    try:
        raw_body = await request.body()
        payload = TipGatewayRequest.model_validate(json.loads(raw_body or b"{}"))
    except ValueError:
        logger.warning("Rejected malformed proxy request body", extra={"event": "gateway.bad_request"})
        return _gateway_error_response(GatewayError.invalid_format("Invalid request body"))

    try:
        result = await gateway.handle(
            payload.type,
            age=payload.age,
            gender=payload.gender,
            goal=payload.goal,
            tip_title=payload.tip_title,
        )
    except GatewayError as exc:
        logger.error(
            "Error in generate-wellness-tips: %s",
            exc.message,
            extra={"event": "gateway.error", "kind": exc.kind.value},
        )
        return _gateway_error_response(exc)
    except Exception as exc:
        logger.exception("Unexpected error in generate-wellness-tips", extra={"event": "gateway.error"})
        return _gateway_error_response(
            GatewayError(GatewayErrorKind.UNKNOWN, str(exc) or "An unexpected error occurred")
        )

    return JSONResponse(result)


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

def _render(
    request: Request,
    state: WellnessState,
    template_name: str,
    context: dict[str, Any],
    *,
    status_code: int = 200,
) -> HTMLResponse:
    page_context = {
        "profile": state.profile,
        "favorite_count": len(state.favorites),
        "notifications": state.drain_notifications(),
        **context,
    }
    return templates.TemplateResponse(request, template_name, page_context, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


@app.get("/", response_class=HTMLResponse)
async def profile_intake(
    request: Request,
    state: WellnessState = Depends(get_wellness_state),
) -> HTMLResponse:
    """Render the profile form, prefilled with the current profile when one exists."""

    state.cancel_pending()
    profile = state.profile
    form_values = (
        {"age": str(profile.age), "gender": profile.gender.value, "goal": profile.goal.value}
        if profile
        else {}
    )
    return _render(
        request,
        state,
        "profile.html",
        {
            "title": "Wellness Journey",
            "genders": list(Gender),
            "goals": list(WellnessGoal),
            "form_values": form_values,
            "errors": {},
        },
    )


@app.post("/", response_class=HTMLResponse)
async def submit_profile(
    request: Request,
    state: WellnessState = Depends(get_wellness_state),
) -> Response:
    """Store the submitted profile and continue to the tips page."""

    form = await request.form()
    form_values = {key: str(value) for key, value in form.items()}
    try:
        submitted = ProfileForm.model_validate(form_values)
    except ValidationError as exc:
        return _render(
            request,
            state,
            "profile.html",
            {
                "title": "Wellness Journey",
                "genders": list(Gender),
                "goals": list(WellnessGoal),
                "form_values": form_values,
                "errors": _form_errors(exc),
            },
            status_code=400,
        )

    state.set_profile(submitted.to_profile())
    logger.info(
        "Profile submitted",
        extra={"event": "profile.submitted", "goal": submitted.goal.value},
    )
    return _redirect("/tips")


@app.get("/tips", response_class=HTMLResponse)
async def list_tips(
    request: Request,
    state: WellnessState = Depends(get_wellness_state),
    client: TipClient = Depends(get_tip_client),
) -> Response:
    """Render the generated tips, generating a batch when none exist yet."""

    state.cancel_pending()
    if state.profile is None:
        return _redirect("/")

    if not state.tips:
        await refresh_tips(state, client)

    return _render(
        request,
        state,
        "tips.html",
        {
            "title": "Your Wellness Tips",
            "tips": state.tips,
            "favorite_ids": {favorite.id for favorite in state.favorites},
            "is_loading": state.is_loading,
        },
    )


@app.post("/tips/regenerate")
async def regenerate_tips(
    state: WellnessState = Depends(get_wellness_state),
    client: TipClient = Depends(get_tip_client),
) -> RedirectResponse:
    if state.profile is None:
        return _redirect("/")
    await refresh_tips(state, client)
    return _redirect("/tips")


@app.get("/tip/{tip_id}", response_class=HTMLResponse)
async def tip_detail(
    request: Request,
    tip_id: str,
    state: WellnessState = Depends(get_wellness_state),
    client: TipClient = Depends(get_tip_client),
) -> Response:
    """Render a tip, expanding its details and action plan on first view."""

    state.cancel_pending()
    tip = state.get_tip(tip_id)
    if tip is None:
        return _redirect("/tips")

    tip = await ensure_tip_details(state, client, tip_id) or tip
    return _render(
        request,
        state,
        "tip_detail.html",
        {
            "title": tip.title,
            "tip": tip,
            "is_favorite": state.is_favorite(tip.id),
        },
    )


@app.post("/tip/{tip_id}/favorite")
async def toggle_tip_favorite(
    tip_id: str,
    state: WellnessState = Depends(get_wellness_state),
) -> RedirectResponse:
    tip = state.get_tip(tip_id)
    if tip is None:
        return _redirect("/tips")
    toggle_favorite(state, tip)
    return _redirect(f"/tip/{tip_id}")


@app.get("/favorites", response_class=HTMLResponse)
async def list_favorites(
    request: Request,
    state: WellnessState = Depends(get_wellness_state),
) -> HTMLResponse:
    """Render the saved favourites, most recent first."""

    state.cancel_pending()
    return _render(
        request,
        state,
        "favorites.html",
        {
            "title": "Your Favorites",
            "favorites": state.favorites,
        },
    )


@app.post("/favorites/{tip_id}/remove")
async def remove_favorite(
    tip_id: str,
    state: WellnessState = Depends(get_wellness_state),
) -> RedirectResponse:
    if state.is_favorite(tip_id):
        state.remove_favorite(tip_id)
        state.notify("Removed from favorites", "Tip removed from your saved collection")
    return _redirect("/favorites")


@app.post("/session/reset")
async def reset_session(
    request: Request,
    registry: SessionRegistry = Depends(get_session_registry),
) -> RedirectResponse:
    """End the browser's session; saved favourites are kept."""

    registry.close(request.state.client_id)
    return _redirect("/")
