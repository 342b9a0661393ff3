import pytest
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, ValidationError

from app.core.config import Settings
from app.core.errors import register_exception_handlers


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    class Payload(BaseModel):
        count: int

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="User not found")

    @app.post("/typed")
    async def typed(payload: Payload):
        return payload

    return app


@pytest.mark.asyncio
async def test_unhandled_errors_hide_details():
    transport = ASGITransport(app=build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        res = await ac.get("/boom")
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Internal server error"}


@pytest.mark.asyncio
async def test_http_errors_use_envelope():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
        res = await ac.get("/missing")
    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "User not found"}


@pytest.mark.asyncio
async def test_type_errors_name_the_field():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
        res = await ac.post("/typed", json={"count": "many"})
    assert res.status_code == 400
    assert res.json()["error"].startswith("count: ")


def test_otp_test_mode_refused_in_production():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production", OTP_TEST_MODE=True, DATABASE_URL="sqlite+aiosqlite://")


def test_database_url_built_from_parts():
    settings = Settings(
        DATABASE_URL="",
        POSTGRES_USER="gamca",
        POSTGRES_PASSWORD="pw",
        POSTGRES_SERVER="db",
        POSTGRES_DB="appointments",
    )
    assert settings.DATABASE_URL == "postgresql+asyncpg://gamca:pw@db/appointments"


def test_cors_origins_split_frontend_url():
    settings = Settings(FRONTEND_URL="https://gamca.example, https://admin.gamca.example")
    assert settings.cors_origins == ["https://gamca.example", "https://admin.gamca.example"]


def test_environment_defaults_to_production(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("OTP_TEST_MODE", raising=False)
    settings = Settings(DATABASE_URL="sqlite+aiosqlite://")
    assert settings.APP_ENV == "production"
    assert settings.is_production is True
