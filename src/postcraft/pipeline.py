from __future__ import annotations

import time

import httpx
import structlog

from .client import CompletionClient
from .config import DEFAULT_MODEL, PostCraftConfig
from .errors import ConfigurationError
from .extractor import extract_post_fields
from .metrics import pipeline_latency_seconds, pipeline_requests_total
from .models import CapturedContent, PipelineSettings, StructuredPost
from .normalizer import normalize_post
from .request_builder import build_completion_request
from .retry import RetryController

log = structlog.get_logger()


class PostPipeline:
    """Selected text in, normalized LinkedIn post out."""

    def __init__(self, cfg: PostCraftConfig | None = None, *, http_client: httpx.AsyncClient | None = None):
        self.cfg = cfg or PostCraftConfig()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.cfg.upstream_timeout_seconds)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def client_for(self, settings: PipelineSettings) -> CompletionClient:
        return CompletionClient(
            settings.api_key,
            client=self._http,
            base_url=self.cfg.openai_base_url,
            timeout_seconds=self.cfg.upstream_timeout_seconds,
        )

    async def check_connection(self, settings: PipelineSettings) -> bool:
        return await self.client_for(settings).check_connection()

    async def process_content(self, content: CapturedContent, settings: PipelineSettings) -> StructuredPost:
        start = time.monotonic()
        try:
            if not settings.api_key:
                raise ConfigurationError("OpenAI API key not configured. Please set it in the settings.")
            categories = list(settings.categories)
            if not categories:
                raise ConfigurationError("No categories configured.")
            model = settings.model or self.cfg.openai_model or DEFAULT_MODEL

            request = build_completion_request(
                content,
                categories,
                model,
                output_budget=self.cfg.baseline_output_budget,
                max_input_chars=self.cfg.max_input_chars,
            )
            history = await RetryController(self.client_for(settings)).run(request)
            final = history[-1]

            extraction = extract_post_fields(final.raw_text, categories)
            post = normalize_post(
                extraction.fields,
                content,
                categories,
                model=model,
                degraded=extraction.degraded,
            )
        except Exception as e:
            pipeline_requests_total.labels(status=type(e).__name__).inc()
            log.warning("pipeline_error", error_type=type(e).__name__, error=str(e))
            raise
        finally:
            pipeline_latency_seconds.observe(max(0.0, time.monotonic() - start))

        pipeline_requests_total.labels(status="degraded" if post.degraded else "success").inc()
        log.info(
            "pipeline_ok",
            model=model,
            dialect=request.dialect.value,
            attempts=len(history),
            strategy=extraction.strategy.value,
            category=post.category,
            is_new_category=post.is_new_category,
            character_count=post.character_count,
        )
        return post


async def process_content(
    content: CapturedContent,
    settings: PipelineSettings,
    *,
    cfg: PostCraftConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> StructuredPost:
    pipeline = PostPipeline(cfg, http_client=http_client)
    try:
        return await pipeline.process_content(content, settings)
    finally:
        await pipeline.close()
