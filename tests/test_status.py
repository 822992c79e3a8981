"""Unit tests for the /status endpoint."""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from wordcounter.main import create_app

CI_VARS = ["BUILD_NUMBER", "GIT_SHA", "GITHUB_SHA", "ENVIRONMENT", "ENV"]


@pytest.fixture
def client(make_settings):
    # No lifespan: /status never touches the engine
    return TestClient(create_app(make_settings(WORDCOUNTER_CACHE_SERVICE="database")))


def _clean_env(**values):
    env = {key: value for key, value in os.environ.items() if key not in CI_VARS}
    env.update(values)
    return patch.dict(os.environ, env, clear=True)


class TestStatusEndpoint:
    """Test cases for the /status endpoint."""

    def test_status_reports_cache_service(self, client):
        data = client.get("/status").json()
        assert data["status"] == "ok"
        assert data["cache_service"] == "database"
        assert {"build", "sha", "env"} <= set(data)

    @pytest.mark.parametrize(
        "env, expected",
        [
            (
                {"BUILD_NUMBER": "123", "GIT_SHA": "abc123def456", "ENVIRONMENT": "production"},
                ("123", "abc123def456", "production"),
            ),
            (
                {"BUILD_NUMBER": "456", "GITHUB_SHA": "github123sha456", "ENV": "staging"},
                ("456", "github123sha456", "staging"),
            ),
            # GIT_SHA wins over GITHUB_SHA, ENVIRONMENT over ENV
            (
                {"GIT_SHA": "priority_sha", "GITHUB_SHA": "fallback_sha", "ENVIRONMENT": "test", "ENV": "other"},
                ("local-dev", "priority_sha", "test"),
            ),
        ],
    )
    def test_ci_variables(self, client, env, expected):
        with _clean_env(**env):
            data = client.get("/status").json()
        assert (data["build"], data["sha"], data["env"]) == expected

    def test_local_development(self, client):
        with _clean_env():
            data = client.get("/status").json()
        assert data["build"] == "local-dev"
        assert data["env"] == "development"
        # Either a git hash or "local-dev"
        assert data["sha"] == "local-dev" or len(data["sha"]) >= 8
