from __future__ import annotations

import asyncio
import os
import time
from contextlib import asynccontextmanager

from pydantic import BaseModel

from .config import PostCraftConfig
from .errors import (
    ConfigurationError,
    EmptyCompletionError,
    PostCraftError,
    RequestTimeoutError,
    UpstreamError,
    UpstreamProtocolError,
)
from .logging import configure_logging
from .metrics import maybe_start_metrics, server_errors_total, server_request_latency_seconds, server_requests_total
from .models import CapturedContent, PipelineSettings, StructuredPost
from .openai_compat import make_openai_error_response
from .pipeline import PostPipeline
from .result_store import ResultStore
from .settings_store import EncryptedSettingsStore
from .http_security import install_middlewares


_ERROR_STATUS: tuple[tuple[type[PostCraftError], int], ...] = (
    (ConfigurationError, 400),
    (UpstreamError, 502),
    (UpstreamProtocolError, 502),
    (EmptyCompletionError, 422),
    (RequestTimeoutError, 504),
)


def status_for_error(exc: BaseException) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


class CreatePostRequest(CapturedContent):
    model: str | None = None


class CreatePostResponse(BaseModel):
    id: str
    post: StructuredPost


class ConnectionCheckResponse(BaseModel):
    connected: bool


def create_app(
    cfg: PostCraftConfig | None = None,
    pipeline: PostPipeline | None = None,
    results: ResultStore | None = None,
    settings_store: EncryptedSettingsStore | None = None,
):
    try:
        from fastapi import FastAPI, HTTPException
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    cfg = cfg or PostCraftConfig()
    configure_logging(
        level=cfg.log_level,
        fmt=cfg.log_format,
        secrets=[s for s in (cfg.openai_api_key, cfg.fernet_key, cfg.server_auth_token) if s],
    )
    if pipeline is None:
        pipeline = PostPipeline(cfg)
    if results is None:
        results = ResultStore(ttl_seconds=cfg.result_ttl_seconds, max_entries=cfg.result_store_max_entries)
    if settings_store is None and cfg.settings_path:
        settings_store = EncryptedSettingsStore(cfg.settings_path, cfg.require_fernet_key())

    def _settings(model: str | None = None) -> PipelineSettings:
        snapshot = settings_store.load_settings() if settings_store is not None else cfg.settings_snapshot()
        if model:
            snapshot = snapshot.model_copy(update={"model": model})
        return snapshot

    def _request_id(request) -> str | None:
        return getattr(getattr(request, "state", None), "request_id", None)

    def _observe(path: str, status_code: int, started_at: float) -> None:
        server_requests_total.labels(path=path, status=str(status_code)).inc()
        server_request_latency_seconds.labels(path=path).observe(max(0.0, time.monotonic() - started_at))

    def _error_response(request, *, status_code: int, message: str, type: str, upstream_status: int | None = None):
        server_errors_total.labels(type=type).inc()
        return JSONResponse(
            status_code=status_code,
            content=make_openai_error_response(
                message=message,
                type=type,
                code=_request_id(request),
                upstream_status=upstream_status,
            ).model_dump(),
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)
        if settings_store is not None:
            settings_store.migrate_categories()
        try:
            yield
        finally:
            await pipeline.close()

    app = FastAPI(
        title="postcraft",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if cfg.enable_api_docs else None,
        redoc_url="/redoc" if cfg.enable_api_docs else None,
        openapi_url="/openapi.json" if cfg.enable_api_docs else None,
    )
    install_middlewares(app, cfg=cfg)

    @app.exception_handler(ConfigurationError)
    async def _config_error_handler(request, exc: ConfigurationError):
        return _error_response(request, status_code=status_for_error(exc), message=str(exc), type="invalid_request_error")

    @app.exception_handler(UpstreamError)
    async def _upstream_status_handler(request, exc: UpstreamError):
        return _error_response(
            request,
            status_code=status_for_error(exc),
            message=str(exc),
            type="upstream_error",
            upstream_status=exc.status_code,
        )

    @app.exception_handler(UpstreamProtocolError)
    async def _upstream_protocol_handler(request, exc: UpstreamProtocolError):
        return _error_response(request, status_code=status_for_error(exc), message=str(exc), type="upstream_error")

    @app.exception_handler(EmptyCompletionError)
    async def _empty_completion_handler(request, exc: EmptyCompletionError):
        return _error_response(request, status_code=status_for_error(exc), message=str(exc), type="empty_completion")

    @app.exception_handler(RequestTimeoutError)
    async def _timeout_error_handler(request, exc: RequestTimeoutError):
        return _error_response(request, status_code=status_for_error(exc), message=str(exc) or "Request timed out.", type="timeout")

    @app.exception_handler(PostCraftError)
    async def _postcraft_error_handler(request, exc: PostCraftError):
        return _error_response(request, status_code=500, message=str(exc), type="api_error")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/posts", response_model=CreatePostResponse)
    async def create_post(req: CreatePostRequest):
        started_at = time.monotonic()
        status_code = 500
        try:
            content = CapturedContent.model_validate(req.model_dump(exclude={"model"}))
            settings = _settings(req.model)
            try:
                post = await asyncio.wait_for(
                    pipeline.process_content(content, settings),
                    timeout=max(0.0, float(cfg.process_timeout_seconds or 0)) or None,
                )
            except asyncio.TimeoutError as e:
                raise RequestTimeoutError("Post generation timed out.") from e

            result_id = results.put(post)
            status_code = 200
            return CreatePostResponse(id=result_id, post=post)
        except Exception as e:
            status_code = status_for_error(e)
            raise
        finally:
            _observe("/v1/posts", status_code, started_at)

    @app.get("/v1/posts/{result_id}", response_model=StructuredPost)
    async def get_post(result_id: str):
        post = results.get(result_id)
        if post is None:
            raise HTTPException(status_code=404, detail="Unknown or expired result id.")
        return post

    @app.post("/v1/posts/{result_id}/accept", response_model=StructuredPost)
    async def accept_post(result_id: str):
        post = results.pop(result_id)
        if post is None:
            raise HTTPException(status_code=404, detail="Unknown or expired result id.")
        if settings_store is not None:
            settings_store.accept_post(post)
        return post

    @app.delete("/v1/posts/{result_id}", status_code=204)
    async def discard_post(result_id: str):
        if results.pop(result_id) is None:
            raise HTTPException(status_code=404, detail="Unknown or expired result id.")

    @app.post("/v1/connection-check", response_model=ConnectionCheckResponse)
    async def connection_check():
        return ConnectionCheckResponse(connected=await pipeline.check_connection(_settings()))

    return app


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("postcraft.server:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":  # pragma: no cover
    main()
