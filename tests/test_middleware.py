"""
Tests for CORS origin parsing and middleware registration.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coursehub.app.middleware.cors import _parse_origins, setup_cors


class TestParseOrigins:
    def test_single_origin(self):
        assert _parse_origins("http://localhost:3000") == ["http://localhost:3000"]

    def test_comma_separated(self):
        raw = " http://localhost:3000 , https://app.example.com,, "
        assert _parse_origins(raw) == ["http://localhost:3000", "https://app.example.com"]

    def test_json_array(self):
        raw = '  ["http://localhost:3000", "https://app.example.com"]'
        assert _parse_origins(raw) == ["http://localhost:3000", "https://app.example.com"]

    def test_empty(self):
        assert _parse_origins("   ") == []


class TestSetupCors:
    def test_registers_configured_origins(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", '["https://app.example.com"]')
        app = FastAPI()

        setup_cors(app)

        cors = [m for m in app.user_middleware if m.cls is CORSMiddleware]
        assert len(cors) == 1
        assert cors[0].kwargs["allow_origins"] == ["https://app.example.com"]
