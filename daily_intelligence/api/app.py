"""FastAPI application for the Daily Intelligence dashboard."""

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from starlette.middleware.sessions import SessionMiddleware

from ..aggregation import default_date_range, filter_options, summarize
from ..aggregation.labels import load_group_mapping
from ..config import Config
from ..database import SupabaseClient
from ..errors import AuthRequired, ExportError, StoreError, ValidationError
from ..export import export_filename
from ..models import FilterState
from ..tagging import MutationOutcome
from ..ui_state import DashboardController, JsonFilePreferencesStore, PreferencesStore
from .auth import User, get_current_user, require_auth

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter()


# ============================================================================
# Request bodies
# ============================================================================


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ArticleTagRequest(BaseModel):
    article_id: Optional[str] = None
    tag_id: Optional[str] = None


class TagRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    color: Optional[str] = None


class NoteCreateRequest(BaseModel):
    articleId: Optional[str] = None
    content: Optional[Any] = None


class NoteUpdateRequest(BaseModel):
    noteId: Optional[str] = None
    content: Optional[Any] = None


class ArticlesQuery(BaseModel):
    page: int = 0
    pageSize: int = 20
    filters: dict[str, Any] = {}


class PreferencesRequest(BaseModel):
    sidebar_collapsed: Optional[bool] = None


# ============================================================================
# Helpers and dependencies
# ============================================================================


def require(condition: Any, message: str, field: Optional[str] = None) -> None:
    if not condition:
        raise ValidationError(message, field=field)


def require_content(content: Any) -> str:
    """Note content must be a non-empty string; returned trimmed."""
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content must be a non-empty string", field="content")
    return content.strip()


def get_store(request: Request) -> SupabaseClient:
    return request.app.state.store


async def get_controller(request: Request, user: User = Depends(require_auth)) -> DashboardController:
    """The signed-in user's controller, created and loaded on first use."""
    registry: dict[str, DashboardController] = request.app.state.controllers
    controller = registry.get(user.id)
    if controller is None:
        controller = DashboardController(
            request.app.state.store,
            request.app.state.preferences_factory(user.id),
            page_size=request.app.state.config.page_size,
            clock=request.app.state.clock,
        )
        registry[user.id] = controller
    if not controller.cache.loaded:
        await controller.ensure_loaded()
        request.state.controller_loaded = True
    return controller


def _dump(models) -> list[dict]:
    return [m.model_dump(mode="json") for m in models]


# ============================================================================
# Health, pages and authentication
# ============================================================================


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/login")
async def login_page(user: Optional[User] = Depends(get_current_user)):
    if user:
        return RedirectResponse("/dashboard")
    return {"authenticated": False, "login": "/api/auth/login"}


@router.get("/dashboard")
async def dashboard_page(user: User = Depends(require_auth)):
    return {"page": "dashboard", "user": user.model_dump()}


@router.get("/analytics")
async def analytics_page(user: User = Depends(require_auth)):
    return {"page": "analytics", "user": user.model_dump()}


@router.post("/api/auth/login")
async def login(request: Request, body: LoginRequest, store: SupabaseClient = Depends(get_store)):
    require(body.email and body.password, "Email and password are required")
    user = await asyncio.to_thread(store.sign_in, body.email, body.password)
    if user is None:
        return JSONResponse({"error": "Invalid email or password"}, status_code=401)
    request.session["user"] = {"id": user["id"], "email": user["email"]}
    logger.info("User logged in: %s", user["email"])
    return {"success": True, "redirect": "/dashboard"}


@router.post("/api/auth/logout")
async def logout(request: Request, store: SupabaseClient = Depends(get_store)):
    user = get_current_user(request)
    request.session.clear()
    if user:
        request.app.state.controllers.pop(user.id, None)
        await asyncio.to_thread(store.sign_out)
    return {"success": True, "redirect": "/login"}


@router.get("/api/auth/me")
async def me(user: Optional[User] = Depends(get_current_user)):
    if not user:
        return {"authenticated": False}
    return {"authenticated": True, "user": user.model_dump()}


# ============================================================================
# Dashboard data
# ============================================================================


@router.get("/api/dashboard/data")
async def dashboard_data(request: Request, controller: DashboardController = Depends(get_controller)):
    """Bulk articles, tags, KPIs and filter options, fetched fresh once per request."""
    if not getattr(request.state, "controller_loaded", False):
        await controller.load()
    articles = controller.cache.articles
    return {
        "articles": _dump(articles),
        "tags": _dump(controller.cache.tags),
        "kpis": controller.cache.kpis.model_dump(),
        "filterOptions": filter_options(articles).model_dump(),
    }


@router.post("/api/dashboard/articles")
async def dashboard_articles(
    body: ArticlesQuery,
    user: User = Depends(require_auth),
    store: SupabaseClient = Depends(get_store),
):
    """Paged, server-filtered article search."""
    # Unset score bounds and sector group mean "no constraint" on this path
    raw = {"minScore": None, "maxScore": None, "sectorGroup": None}
    raw.update({to_camel(k): v for k, v in body.filters.items()})
    try:
        filters = FilterState.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid filters: {exc.errors()[0].get('msg')}", field="filters") from exc

    articles, total = await asyncio.gather(
        asyncio.to_thread(store.search_articles, filters, body.page, body.pageSize),
        asyncio.to_thread(store.count_filtered_articles, filters),
    )
    return {"articles": _dump(articles), "total": total}


@router.get("/api/dashboard/filter-options")
async def dashboard_filter_options(
    user: User = Depends(require_auth),
    store: SupabaseClient = Depends(get_store),
):
    return await asyncio.to_thread(store.distinct_filter_options)


@router.get("/api/dashboard/kpis")
async def dashboard_kpis(user: User = Depends(require_auth), store: SupabaseClient = Depends(get_store)):
    kpis = await asyncio.to_thread(store.dashboard_kpis)
    return kpis.model_dump()


@router.get("/api/dashboard/view")
async def dashboard_view(
    page: Optional[int] = None,
    hidden: bool = False,
    controller: DashboardController = Depends(get_controller),
):
    """Filtered, paginated active (or hidden) view from the cached collection."""
    return controller.view(hidden=hidden, page=page).model_dump(mode="json")


@router.get("/api/dashboard/filters")
async def get_filters(controller: DashboardController = Depends(get_controller)):
    return controller.filters.state.model_dump(mode="json")


@router.patch("/api/dashboard/filters")
async def patch_filters(
    partial: dict[str, Any] = Body(...),
    controller: DashboardController = Depends(get_controller),
):
    return controller.update_filters(partial).model_dump(mode="json")


@router.post("/api/dashboard/filters/clear")
async def clear_filters(controller: DashboardController = Depends(get_controller)):
    return controller.clear_filters().model_dump(mode="json")


@router.get("/api/dashboard/export")
async def dashboard_export(
    request: Request,
    hidden: bool = False,
    controller: DashboardController = Depends(get_controller),
):
    payload = controller.export(hidden=hidden, group_mapping=request.app.state.group_mapping)
    today = request.app.state.clock().date()
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(today)}"'},
    )


# ============================================================================
# Tags and article tags
# ============================================================================


@router.get("/api/dashboard/tags")
async def list_tags(user: User = Depends(require_auth), store: SupabaseClient = Depends(get_store)):
    return _dump(await asyncio.to_thread(store.fetch_tags))


@router.post("/api/dashboard/tags")
async def create_tag(
    body: TagRequest,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(body.name and body.color, "Name and color are required")
    tag = await asyncio.to_thread(store.create_tag, body.name.strip(), body.color)
    controller.tag_saved(tag)
    return tag.model_dump()


@router.put("/api/dashboard/tags")
async def update_tag(
    body: TagRequest,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(body.id and body.name and body.color, "ID, name and color are required")
    tag = await asyncio.to_thread(store.update_tag, body.id, body.name.strip(), body.color)
    controller.tag_saved(tag)
    return tag.model_dump()


@router.delete("/api/dashboard/tags")
async def delete_tag(
    id: Optional[str] = None,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(id, "ID is required", field="id")
    await asyncio.to_thread(store.delete_tag, id)
    controller.tag_deleted(id)
    return {"success": True}


def _mutation_response(outcome: MutationOutcome):
    if outcome == MutationOutcome.FAILED:
        return JSONResponse({"error": "Tag update failed; articles were reloaded"}, status_code=500)
    return {"success": True, "skipped": outcome == MutationOutcome.SKIPPED}


@router.post("/api/dashboard/article-tags")
async def add_article_tag(body: ArticleTagRequest, controller: DashboardController = Depends(get_controller)):
    require(body.article_id and body.tag_id, "article_id and tag_id are required")
    return _mutation_response(await controller.add_tag(body.article_id, body.tag_id))


@router.delete("/api/dashboard/article-tags")
async def remove_article_tag(
    article_id: Optional[str] = None,
    tag_id: Optional[str] = None,
    controller: DashboardController = Depends(get_controller),
):
    require(article_id and tag_id, "article_id and tag_id are required")
    return _mutation_response(await controller.remove_tag(article_id, tag_id))


# ============================================================================
# Notes
# ============================================================================


@router.get("/api/dashboard/notes")
async def get_note(
    articleId: Optional[str] = None,
    user: User = Depends(require_auth),
    store: SupabaseClient = Depends(get_store),
):
    require(articleId, "Article ID is required", field="articleId")
    note = await asyncio.to_thread(store.get_note, articleId)
    return {"note": note.model_dump(mode="json") if note else None}


@router.post("/api/dashboard/notes")
async def create_note(
    body: NoteCreateRequest,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(body.articleId and body.content, "Article ID and content are required")
    content = require_content(body.content)
    try:
        note = await asyncio.to_thread(store.create_note, body.articleId, content)
    except StoreError as exc:
        if not exc.is_conflict:
            raise
        # One note per article: a second create updates the existing note
        existing = await asyncio.to_thread(store.get_note, body.articleId)
        if existing is None:
            raise
        note = await asyncio.to_thread(store.update_note, existing.id, content)
    controller.note_saved(note)
    return {"note": note.model_dump(mode="json")}


@router.put("/api/dashboard/notes")
async def update_note(
    body: NoteUpdateRequest,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(body.noteId and body.content, "Note ID and content are required")
    content = require_content(body.content)
    note = await asyncio.to_thread(store.update_note, body.noteId, content)
    controller.note_saved(note)
    return {"note": note.model_dump(mode="json")}


@router.delete("/api/dashboard/notes")
async def delete_note(
    noteId: Optional[str] = None,
    store: SupabaseClient = Depends(get_store),
    controller: DashboardController = Depends(get_controller),
):
    require(noteId, "Note ID is required", field="noteId")
    await asyncio.to_thread(store.delete_note, noteId)
    controller.note_deleted(noteId)
    return {"success": True}


# ============================================================================
# Analytics
# ============================================================================


@router.get("/api/analytics")
async def analytics_dump(user: User = Depends(require_auth), store: SupabaseClient = Depends(get_store)):
    """Raw processed articles; time-based calculations happen in the caller."""
    articles = await asyncio.to_thread(store.fetch_analytics_articles)
    return {"articles": _dump(articles)}


@router.get("/api/analytics/summary")
async def analytics_summary(
    request: Request,
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: User = Depends(require_auth),
    store: SupabaseClient = Depends(get_store),
):
    """Every analytics view for an inclusive date range (default: last 30 days)."""
    now = request.app.state.clock()
    range_start, range_end = default_date_range(now)
    if start is not None:
        range_start = datetime.combine(start, time.min, tzinfo=now.tzinfo)
    if end is not None:
        range_end = datetime.combine(end + timedelta(days=1), time.min, tzinfo=now.tzinfo) - timedelta(microseconds=1)
    require(range_start <= range_end, "start must not be after end", field="start")

    articles = await asyncio.to_thread(store.fetch_analytics_articles)
    summary = summarize(articles, range_start, range_end, now=now, group_mapping=request.app.state.group_mapping)
    return summary.model_dump(mode="json")


# ============================================================================
# Preferences
# ============================================================================


@router.get("/api/preferences")
async def get_preferences(controller: DashboardController = Depends(get_controller)):
    return controller.state.model_dump()


@router.put("/api/preferences")
async def put_preferences(body: PreferencesRequest, controller: DashboardController = Depends(get_controller)):
    require(body.sidebar_collapsed is not None, "sidebar_collapsed is required", field="sidebar_collapsed")
    return controller.set_sidebar_collapsed(body.sidebar_collapsed).model_dump()


# ============================================================================
# Error mapping
# ============================================================================


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthRequired)
    async def auth_required_handler(request: Request, exc: AuthRequired):
        if request.url.path.startswith("/api/"):
            return JSONResponse({"error": exc.message}, status_code=401)
        return RedirectResponse("/login")

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse({"error": exc.message, "field": exc.field}, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or None
        return JSONResponse({"error": first.get("msg", "Invalid request"), "field": field}, status_code=400)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=500)

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError):
        return JSONResponse({"error": str(exc)}, status_code=500)


def create_app(
    config: Config,
    store: Optional[SupabaseClient] = None,
    preferences_factory: Optional[Callable[[str], PreferencesStore]] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Loaded configuration.
        store: Store client; a SupabaseClient is created from config when omitted.
        preferences_factory: user id -> PreferencesStore (JSON file by default).
        clock: "now" in the dashboard timezone; defaults to the configured timezone.
    """
    tz = ZoneInfo(config.timezone)

    app = FastAPI(title="SoloSearch Daily Intelligence")
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session_secret,
        session_cookie="daily_intelligence_session",
        max_age=7 * 24 * 60 * 60,
        same_site="lax",
        https_only=config.https_only,
    )

    app.state.config = config
    app.state.store = store or SupabaseClient(config.supabase_url, config.supabase_key)
    app.state.preferences_factory = preferences_factory or (
        lambda user_id: JsonFilePreferencesStore(config.preferences_path, namespace=user_id)
    )
    app.state.clock = clock or (lambda: datetime.now(tz))
    app.state.group_mapping = load_group_mapping(config.groups_file)
    app.state.controllers = {}

    _register_error_handlers(app)
    app.include_router(router)
    return app
