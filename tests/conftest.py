"""Shared fixtures for the sessionkit test suite."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient

from sessionkit import (
    MemoryStore,
    SessionAlreadyWrittenError,
    SessionData,
    SessionManager,
    SessionMiddleware,
    get_session,
)


# ── Store & Manager ───────────────────────────────────────────────────────

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def manager(store) -> SessionManager:
    return SessionManager(store, lifetime=timedelta(hours=1))


@pytest.fixture
def session(manager) -> SessionData:
    """A fresh, unsaved session."""
    return manager.new_session()


# ── App & Client ──────────────────────────────────────────────────────────

def build_app(manager: SessionManager, **middleware_kwargs) -> FastAPI:
    """Minimal app exercising every session operation over HTTP."""
    app = FastAPI()

    @app.get("/put")
    async def put(key: str, value: str, session: SessionData = Depends(get_session)):
        session.put(key, value)
        return {"ok": True}

    @app.get("/get")
    async def get(key: str, session: SessionData = Depends(get_session)):
        return {"value": session.get(key)}

    @app.get("/pop")
    async def pop(key: str, session: SessionData = Depends(get_session)):
        return {"value": session.pop(key)}

    @app.get("/keys")
    async def keys(session: SessionData = Depends(get_session)):
        return {"keys": session.keys(), "status": session.status.name}

    @app.get("/destroy")
    async def destroy(session: SessionData = Depends(get_session)):
        await session.destroy()
        return {"ok": True}

    @app.get("/destroy-then-put")
    async def destroy_then_put(session: SessionData = Depends(get_session)):
        await session.destroy()
        session.put("fresh", "yes")
        return {"ok": True}

    @app.get("/renew-token")
    async def renew_token(session: SessionData = Depends(get_session)):
        await session.renew_token()
        return {"ok": True}

    @app.get("/renew")
    async def renew(session: SessionData = Depends(get_session)):
        await session.renew()
        return {"ok": True}

    @app.get("/remember")
    async def remember(session: SessionData = Depends(get_session)):
        session.remember_me()
        return {"ok": True}

    @app.get("/sync-put")
    def sync_put(session: SessionData = Depends(get_session)):
        session.put("sync", "value")
        return {"ok": True}

    @app.get("/stream")
    async def stream(session: SessionData = Depends(get_session)):
        async def body():
            yield b"first;"
            try:
                session.put("late", "value")
            except SessionAlreadyWrittenError:
                yield b"rejected"
            else:
                yield b"accepted"

        return StreamingResponse(body())

    app.add_middleware(SessionMiddleware, manager=manager, **middleware_kwargs)
    return app


@pytest.fixture
def make_app():
    """Factory for apps with a custom manager or middleware options."""
    return build_app


@pytest.fixture
def app(manager) -> FastAPI:
    return build_app(manager)


@pytest.fixture
def client(app) -> TestClient:
    """TestClient with cookie persistence."""
    return TestClient(app, cookies={})
