"""FastAPI service exposing the content tools."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import configure_logging, require_settings
from .errors import HistoryError, HistoryNotFound, InvalidRequest, ParseFailure, UpstreamError
from .history import dumps_output
from .models import HISTORY_TYPES, ArticleOutline, HistoryRecord
from .viral import ViralRequest, generate_viral_titles
from .workflow import (
    DEFAULT_WORD_COUNT,
    Services,
    build_services,
    generate_article,
    generate_outline,
    generate_titles,
    lookup_news,
    lookup_suggestions,
    regenerate_section,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _add_cors(app: FastAPI) -> None:
    """Allow the browser front end to call the API."""
    allow_all = os.getenv("CORS_ALLOW_ALL", "true").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all or not origins:
        origins = ["*"]
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not configured.",
        )
    return services


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _require_fields(payload: Dict[str, Any], *pairs: tuple[str, str]) -> None:
    """Check (key, label) pairs in order; the first missing one is a 400."""
    for key, label in pairs:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _bad_request(f"{label} is required")


def _word_count(payload: Dict[str, Any]) -> int:
    raw = payload.get("wordCount")
    if raw is None:
        return DEFAULT_WORD_COUNT
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise _bad_request("wordCount must be an integer") from exc
    if value <= 0:
        raise _bad_request("wordCount must be positive")
    return value


def _run(step: str, fn: Callable[[], Any]) -> Any:
    """Map domain failures onto HTTP errors for one generation step."""
    try:
        return fn()
    except ParseFailure as exc:
        logger.error("%s: %s", step, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": str(exc), "rawContent": exc.raw_preview},
        ) from exc
    except InvalidRequest as exc:
        raise _bad_request(str(exc)) from exc
    except UpstreamError as exc:
        logger.error("%s: %s", step, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    except Exception as exc:
        logger.exception("%s failed", step)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc) or f"Failed to {step}",
        ) from exc


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.post("/api/generate-titles")
def generate_titles_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    _require_fields(payload, ("topic", "Topic"))
    result = _run("generate titles", lambda: generate_titles(payload["topic"], services))
    return {
        "titles": [t.model_dump(by_alias=True) for t in result.titles],
        "status": result.status,
        "strategy": result.strategy,
        "warnings": result.warnings,
    }


@router.post("/api/generate-outline")
def generate_outline_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    _require_fields(payload, ("title", "Title"), ("topic", "Topic"))
    word_count = _word_count(payload)
    outline = _run(
        "generate outline",
        lambda: generate_outline(
            payload["title"], payload["topic"], services, word_count=word_count
        ),
    )
    return {"outline": outline.model_dump(by_alias=True)}


@router.post("/api/generate-article")
def generate_article_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    raw_outline = payload.get("outline")
    if (
        not isinstance(raw_outline, dict)
        or not raw_outline.get("title")
        or not raw_outline.get("sections")
    ):
        raise _bad_request("Valid outline is required")
    _require_fields(payload, ("topic", "Topic"))
    word_count = _word_count(payload)
    try:
        outline = ArticleOutline.model_validate(raw_outline)
    except ValueError as exc:
        raise _bad_request(f"Valid outline is required: {exc}") from exc
    article = _run(
        "generate article",
        lambda: generate_article(outline, payload["topic"], services, word_count=word_count),
    )
    return {"article": article.model_dump(by_alias=True)}


@router.post("/api/regenerate-section")
def regenerate_section_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    _require_fields(
        payload,
        ("prompt", "Prompt"),
        ("topic", "Topic"),
        ("sectionTitle", "Section title"),
    )
    subsections = _run(
        "regenerate section",
        lambda: regenerate_section(
            payload["prompt"], payload["topic"], payload["sectionTitle"], services
        ),
    )
    return {"subsections": subsections}


@router.post("/api/viral-titles")
def viral_titles_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    _require_fields(payload, ("format", "Format"), ("headline", "Headline"))
    req = ViralRequest(
        format=str(payload["format"]).lower(),
        headline=str(payload["headline"]),
        audience=str(payload.get("audience") or ""),
        promise=str(payload.get("promise") or ""),
    )
    try:
        req.validate()
    except ValueError as exc:
        raise _bad_request(str(exc)) from exc
    titles = _run("generate viral titles", lambda: generate_viral_titles(req, services))
    return {"titles": titles}


@router.get("/api/news")
def news_endpoint(
    q: Optional[str] = None, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    if not q or not q.strip():
        raise _bad_request("Query parameter is required")
    try:
        articles = lookup_news(q, services)
    except UpstreamError as exc:
        logger.error("Error fetching news for %r: %s", q, exc)
        raise HTTPException(
            status_code=exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to fetch news", "details": str(exc), "status": exc.status_code},
        ) from exc
    return {"articles": [a.model_dump(by_alias=True) for a in articles]}


@router.get("/api/suggestions")
def suggestions_endpoint(
    q: Optional[str] = None, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    if not q or not q.strip():
        raise _bad_request("Query parameter is required")
    results = _run("fetch suggestions", lambda: lookup_suggestions(q, services))
    return {"results": [r.model_dump(by_alias=True) for r in results]}


@router.post("/api/save-history")
def save_history_endpoint(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    _require_fields(payload, ("input", "Input"), ("output", "Output"), ("type", "Type"))
    if payload["type"] not in HISTORY_TYPES:
        raise _bad_request(f"Type must be one of: {', '.join(HISTORY_TYPES)}")
    if services.store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="History store is not configured.",
        )
    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise _bad_request("Metadata must be a JSON object")
    output = payload["output"]
    record = HistoryRecord(
        input=str(payload["input"]),
        output=output if isinstance(output, str) else dumps_output(output),
        type=payload["type"],
        metadata=metadata or {},
    )
    try:
        saved = services.store.save(record)
    except HistoryError as exc:
        logger.error("Error saving to history: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return {
        "success": True,
        "message": "Successfully saved to history",
        "record": saved.model_dump(mode="json"),
    }


@router.get("/api/history")
def list_history_endpoint(
    type: Optional[str] = None, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    if type is not None and type not in HISTORY_TYPES:
        raise _bad_request(f"Type must be one of: {', '.join(HISTORY_TYPES)}")
    if services.store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="History store is not configured.",
        )
    try:
        records = services.store.list(type)
    except HistoryError as exc:
        logger.error("Error fetching history: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return {"records": [r.model_dump(mode="json") for r in records]}


@router.get("/api/history/{record_id}")
def get_history_endpoint(
    record_id: str, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    if services.store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="History store is not configured.",
        )
    try:
        record = services.store.get(record_id)
    except HistoryNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except HistoryError as exc:
        logger.error("Error fetching history by id: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return {"record": record.model_dump(mode="json")}


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Every error body carries an ``error`` string."""
    detail = exc.detail
    content = dict(detail) if isinstance(detail, dict) else {"error": str(detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Internal server error"},
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Request body must be a JSON object", "details": str(exc)},
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the API around an injected Services bundle.

    Without one, services are constructed at start-up from validated settings,
    so a missing key stops the server before it accepts any request.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            settings = require_settings()
            configure_logging(settings.log_level)
            app.state.services = build_services(settings)
            logger.info("Content tools API started (history backend: %s)", settings.history_backend)
        yield

    app = FastAPI(
        title="Content Tools API",
        description="Blog title, outline and article generation with history.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    _add_cors(app)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_tools.server:app",
        host=os.getenv("CONTENT_TOOLS_HOST", "0.0.0.0"),
        port=int(os.getenv("CONTENT_TOOLS_PORT", "8000")),
        reload=os.getenv("CONTENT_TOOLS_RELOAD", "false").lower() == "true",
    )
