"""Tests for health endpoints and API behaviour without backing services."""

import os
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


class TestStatusEndpoint:
    """Test cases for the /status endpoint."""

    def test_status_endpoint_basic(self):
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        for key in ("build", "sha", "env"):
            assert key in data

    def test_status_endpoint_with_environment_variables(self):
        test_env_vars = {
            "BUILD_NUMBER": "123",
            "GIT_SHA": "abc123def456",
            "ENVIRONMENT": "production"
        }

        with patch.dict(os.environ, test_env_vars):
            response = client.get("/status")

            assert response.status_code == 200
            data = response.json()
            assert data["build"] == "123"
            assert data["sha"] == "abc123def456"
            assert data["env"] == "production"

    def test_status_endpoint_priority_order(self):
        """GIT_SHA takes priority over GITHUB_SHA."""
        test_env_vars = {
            "GIT_SHA": "priority_sha",
            "GITHUB_SHA": "fallback_sha",
        }

        with patch.dict(os.environ, test_env_vars):
            response = client.get("/status")
            assert response.json()["sha"] == "priority_sha"


class TestServiceUnavailable:
    """Endpoints report 503 when their backing services are not configured."""

    def test_health_db_without_database(self):
        response = client.get("/health/db")
        assert response.status_code == 503
        assert response.json()["db"] == "unavailable"

    def test_sync_without_source_database(self):
        response = client.post("/v1/articles/sync")
        assert response.status_code == 503
        assert "Source database not initialized" in response.json()["detail"]

    def test_query_without_database(self):
        response = client.post("/v1/rag/query", json={"username": "alice", "query": "What is X?"})
        assert response.status_code == 503
