"""Tests for worker task authentication."""

from unittest.mock import MagicMock, patch

import pytest

from cozynook.api.task_auth import extract_bearer_token, verify_task_auth, verify_task_oidc


def _request(headers: dict) -> MagicMock:
    request = MagicMock()
    request.headers = headers
    return request


class TestExtractBearerToken:
    def test_bearer(self):
        assert extract_bearer_token(_request({"Authorization": "Bearer abc"})) == "abc"

    def test_other_scheme(self):
        assert extract_bearer_token(_request({"Authorization": "Basic abc"})) is None


class TestVerifyTaskOidc:
    def test_fails_closed_without_audience(self, monkeypatch):
        monkeypatch.delenv("TASKS_OIDC_AUDIENCE", raising=False)
        assert verify_task_oidc("token") is False

    def test_valid_token(self, monkeypatch):
        monkeypatch.setenv("TASKS_OIDC_AUDIENCE", "https://worker.example.test")
        monkeypatch.delenv("TASKS_OIDC_SERVICE_ACCOUNT", raising=False)
        with patch(
            "cozynook.api.task_auth.id_token.verify_oauth2_token",
            return_value={"email": "scheduler@proj.iam.gserviceaccount.com"},
        ) as mock_verify:
            assert verify_task_oidc("token") is True
        assert mock_verify.call_args.kwargs["audience"] == "https://worker.example.test"

    def test_invalid_token(self, monkeypatch):
        monkeypatch.setenv("TASKS_OIDC_AUDIENCE", "https://worker.example.test")
        with patch(
            "cozynook.api.task_auth.id_token.verify_oauth2_token",
            side_effect=ValueError("Token expired"),
        ):
            assert verify_task_oidc("token") is False

    def test_service_account_mismatch(self, monkeypatch):
        monkeypatch.setenv("TASKS_OIDC_AUDIENCE", "https://worker.example.test")
        monkeypatch.setenv("TASKS_OIDC_SERVICE_ACCOUNT", "scheduler@proj.iam.gserviceaccount.com")
        with patch(
            "cozynook.api.task_auth.id_token.verify_oauth2_token",
            return_value={"email": "intruder@other.iam.gserviceaccount.com"},
        ):
            assert verify_task_oidc("token") is False


class TestVerifyTaskAuth:
    def test_missing_bearer(self, monkeypatch):
        monkeypatch.delenv("TASKS_OIDC_AUDIENCE", raising=False)
        assert verify_task_auth(_request({})) is False

    @pytest.mark.parametrize("sent,ok", [("local-secret", True), ("wrong", False)])
    def test_local_secret(self, monkeypatch, sent, ok):
        monkeypatch.setenv("TASKS_OIDC_AUDIENCE", "cozynook-tasks-local")
        monkeypatch.setenv("INTERNAL_TASK_SECRET", "local-secret")
        assert verify_task_auth(_request({"X-Internal-Task-Secret": sent})) is ok

    def test_local_secret_ignored_outside_local_audience(self, monkeypatch):
        monkeypatch.setenv("TASKS_OIDC_AUDIENCE", "https://worker.example.test")
        monkeypatch.setenv("INTERNAL_TASK_SECRET", "local-secret")
        assert verify_task_auth(_request({"X-Internal-Task-Secret": "local-secret"})) is False
