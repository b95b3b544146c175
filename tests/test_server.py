import asyncio

import httpx
import pytest
from prometheus_client import REGISTRY

from postcraft.config import PostCraftConfig
from postcraft.errors import EmptyCompletionError, UpstreamError
from postcraft.models import StructuredPost
from postcraft.result_store import ResultStore
from postcraft.settings_store import EncryptedSettingsStore

BODY = {"selectedText": "AI just got 10x cheaper", "sourceUrl": "https://x.com/a", "pageTitle": "Title"}


def _post(category: str = "🚀 Developer Productivity", is_new: bool = False) -> StructuredPost:
    return StructuredPost(
        linkedinPost="A post",
        characterCount=6,
        category=category,
        isNewCategory=is_new,
        originalText=BODY["selectedText"],
        sourceUrl=BODY["sourceUrl"],
        timestamp="2025-01-01T00:00:00+00:00",
    )


def _fake_pipeline(result=None, *, delay: float = 0.0):
    class FakePipeline:
        def __init__(self):
            self.seen = []

        async def close(self) -> None:
            return None

        async def check_connection(self, settings) -> bool:
            return settings.api_key == "sk-good"

        async def process_content(self, content, settings):
            self.seen.append((content, settings))
            if delay:
                await asyncio.sleep(delay)
            if isinstance(result, Exception):
                raise result
            return result or _post()

    return FakePipeline()


def _cfg(**overrides) -> PostCraftConfig:
    data = {"enable_metrics": False, "openai_api_key": "sk-good", "settings_path": None}
    data.update(overrides)
    return PostCraftConfig(**data)


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_create_then_fetch_post_by_id():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    pipeline = _fake_pipeline()
    app = create_app(cfg=_cfg(categories=["🚀 Developer Productivity"]), pipeline=pipeline)
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json={**BODY, "model": "gpt-5-mini"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["post"]["linkedinPost"] == "A post"
        assert data["post"]["category"] == "🚀 Developer Productivity"

        fetched = await client.get(f"/v1/posts/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["originalText"] == BODY["selectedText"]

        deleted = await client.delete(f"/v1/posts/{data['id']}")
        assert deleted.status_code == 204
        assert (await client.get(f"/v1/posts/{data['id']}")).status_code == 404

    content, settings = pipeline.seen[0]
    assert content.selected_text == BODY["selectedText"]
    assert settings.model == "gpt-5-mini"
    assert settings.api_key == "sk-good"
    assert settings.categories == ["🚀 Developer Productivity"]


@pytest.mark.asyncio
async def test_concurrent_results_do_not_overwrite_each_other():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    results = ResultStore()
    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline(), results=results)
    async with _client(app) as client:
        first, second = await asyncio.gather(
            client.post("/v1/posts", json=BODY), client.post("/v1/posts", json=BODY)
        )
    assert first.json()["id"] != second.json()["id"]
    assert len(results) == 2


@pytest.mark.asyncio
async def test_empty_selection_is_rejected_by_validation():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline())
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json={**BODY, "selectedText": "   "})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_upstream_error_maps_to_502_with_upstream_status():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline(UpstreamError(429, "rate limited")))
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY, headers={"X-Request-Id": "req_12345678"})
    assert resp.status_code == 502
    error = resp.json()["error"]
    assert error["type"] == "upstream_error"
    assert error["upstream_status"] == 429
    assert error["code"] == "req_12345678"


@pytest.mark.asyncio
async def test_empty_completion_maps_to_422_with_actionable_message():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline(EmptyCompletionError()))
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY)
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "empty_completion"
    assert "different model" in resp.json()["error"]["message"]


@pytest.mark.asyncio
async def test_missing_api_key_maps_to_400():
    pytest.importorskip("fastapi")
    from postcraft.pipeline import PostPipeline
    from postcraft.server import create_app

    cfg = _cfg(openai_api_key=None)
    app = create_app(cfg=cfg, pipeline=PostPipeline(cfg))
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY)
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "invalid_request_error"


@pytest.mark.asyncio
async def test_process_timeout_maps_to_504():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(process_timeout_seconds=0.01), pipeline=_fake_pipeline(delay=0.05))
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY)
    assert resp.status_code == 504


@pytest.mark.asyncio
async def test_accept_records_new_category_in_settings_store(tmp_path):
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    store = EncryptedSettingsStore(str(tmp_path / "s.enc"), "rYdGvZpTz4l7mOZ1m3cQ3EJ4xJ8k2bq7d2H1m1v7QkA=")
    app = create_app(
        cfg=_cfg(),
        pipeline=_fake_pipeline(_post(category="Brand New", is_new=True)),
        settings_store=store,
    )
    async with _client(app) as client:
        created = await client.post("/v1/posts", json=BODY)
        accepted = await client.post(f"/v1/posts/{created.json()['id']}/accept")
        assert accepted.status_code == 200
        assert accepted.json()["category"] == "Brand New"
        assert (await client.get(f"/v1/posts/{created.json()['id']}")).status_code == 404
    assert "Brand New" in store.load_settings().categories


@pytest.mark.asyncio
async def test_connection_check_uses_configured_key():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline())
    async with _client(app) as client:
        resp = await client.post("/v1/connection-check")
    assert resp.json() == {"connected": True}


@pytest.mark.asyncio
async def test_server_requires_bearer_token_when_configured():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(server_auth_token="sekret"), pipeline=_fake_pipeline())
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY)
        assert resp.status_code == 401
        assert resp.headers.get("WWW-Authenticate", "").lower().startswith("bearer")

        ok = await client.post("/v1/posts", json=BODY, headers={"Authorization": "Bearer sekret"})
        assert ok.status_code == 200


@pytest.mark.asyncio
async def test_server_enforces_max_body_size_413():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(max_request_body_bytes=60), pipeline=_fake_pipeline())
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json={**BODY, "selectedText": "x" * 500})
    assert resp.status_code == 413
    assert resp.json()["error"]["type"] == "invalid_request_error"


@pytest.mark.asyncio
async def test_server_sets_security_headers_and_request_id():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline())
    async with _client(app) as client:
        resp = await client.get("/healthz", headers={"X-Request-Id": "req_12345678"})
        assert resp.status_code == 200
        assert resp.headers.get("X-Request-Id") == "req_12345678"
        assert resp.headers.get("X-Content-Type-Options") == "nosniff"

        resp2 = await client.post("/v1/posts", json=BODY)
        assert resp2.headers.get("Cache-Control") == "no-store"


@pytest.mark.asyncio
async def test_cors_accepts_extension_origin_by_regex():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    cfg = _cfg(cors_allow_origin_regex=r"chrome-extension://[a-p]{32}")
    app = create_app(cfg=cfg, pipeline=_fake_pipeline())
    origin = "chrome-extension://" + "a" * 32
    async with _client(app) as client:
        resp = await client.options(
            "/v1/posts",
            headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
        )
    assert resp.status_code in (200, 204)
    assert resp.headers.get("access-control-allow-origin") == origin


@pytest.mark.asyncio
async def test_injected_empty_result_store_is_used():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    results = ResultStore()
    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline(), results=results)
    async with _client(app) as client:
        created = await client.post("/v1/posts", json=BODY)
    assert results.get(created.json()["id"]) is not None


@pytest.mark.asyncio
async def test_failed_requests_are_counted_with_their_status():
    pytest.importorskip("fastapi")
    from postcraft.server import create_app

    labels = {"path": "/v1/posts", "status": "422"}
    before = REGISTRY.get_sample_value("postcraft_server_requests_total", labels) or 0.0
    app = create_app(cfg=_cfg(), pipeline=_fake_pipeline(EmptyCompletionError()))
    async with _client(app) as client:
        resp = await client.post("/v1/posts", json=BODY)
    assert resp.status_code == 422
    assert REGISTRY.get_sample_value("postcraft_server_requests_total", labels) == before + 1
