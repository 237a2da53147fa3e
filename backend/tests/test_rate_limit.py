"""
Dashboard Backend — Upload Rate Limit Middleware Tests
========================================================

What:  Sliding window behaviour of UploadRateLimitMiddleware.
How:   A bare FastAPI app with stub routes at the real paths and a fake
       clock, so no database or storage is needed.
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from dashboard.middleware.rate_limit import UploadRateLimitMiddleware
from dashboard.middleware.request_id import RequestIDMiddleware


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _build_app(clock: FakeClock, max_requests: int = 2, window: int = 60) -> FastAPI:
    app = FastAPI()

    @app.post("/api/users/upload", status_code=201)
    async def upload():
        return {"message": "ok"}

    @app.get("/api/users/{user_id}/profile")
    async def profile(user_id: str):
        return {"id": user_id}

    app.add_middleware(
        UploadRateLimitMiddleware, max_requests=max_requests, window=window, clock=clock
    )
    app.add_middleware(RequestIDMiddleware)
    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client_factory(clock):
    def _make(**kwargs):
        transport = ASGITransport(app=_build_app(clock, **kwargs))
        return AsyncClient(transport=transport, base_url="http://test")
    return _make


class TestUploadRateLimit:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, client_factory):
        async with client_factory() as client:
            assert (await client.post("/api/users/upload")).status_code == 201
            assert (await client.post("/api/users/upload")).status_code == 201

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self, client_factory, clock):
        async with client_factory() as client:
            await client.post("/api/users/upload")
            clock.now += 10
            await client.post("/api/users/upload")

            response = await client.post("/api/users/upload", headers={"X-Request-ID": "rl-1"})

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["request_id"] == "rl-1"
        # Oldest upload at t=1000 leaves the 60s window at t=1060; now is 1010
        assert response.headers["retry-after"] == "51"
        assert body["details"] == {"retry_after": 51}

    @pytest.mark.asyncio
    async def test_window_slides(self, client_factory, clock):
        async with client_factory() as client:
            await client.post("/api/users/upload")
            await client.post("/api/users/upload")
            assert (await client.post("/api/users/upload")).status_code == 429

            clock.now += 61
            assert (await client.post("/api/users/upload")).status_code == 201

    @pytest.mark.asyncio
    async def test_rejected_requests_do_not_extend_window(self, client_factory, clock):
        async with client_factory(max_requests=1) as client:
            await client.post("/api/users/upload")
            clock.now += 30
            assert (await client.post("/api/users/upload")).status_code == 429

            clock.now += 31
            assert (await client.post("/api/users/upload")).status_code == 201

    @pytest.mark.asyncio
    async def test_reads_are_never_limited(self, client_factory):
        async with client_factory(max_requests=1) as client:
            await client.post("/api/users/upload")
            for _ in range(5):
                assert (await client.get("/api/users/u1/profile")).status_code == 200
