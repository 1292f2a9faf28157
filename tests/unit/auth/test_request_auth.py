"""Unit tests for request authentication dependencies."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import Request

from proofage.api.dependencies import read_api_key, verify_callback_secret
from proofage.config import Settings
from proofage.errors import InvalidVerifierSecretError, MissingVerifierSecretError
from tests.helpers import VERIFIER_SECRET


def _create_mock_request(headers: dict[str, str] | None = None):
    request = MagicMock(spec=Request)
    request.headers = headers or {}
    return request


class TestReadApiKey:
    def test_x_api_key_header(self):
        request = _create_mock_request({"X-API-Key": "pkr_abc"})
        assert read_api_key(request) == "pkr_abc"

    def test_bearer_token(self):
        request = _create_mock_request({"Authorization": "Bearer pkr_abc"})
        assert read_api_key(request) == "pkr_abc"

    def test_x_api_key_wins_over_bearer(self):
        request = _create_mock_request(
            {"X-API-Key": "pkr_header", "Authorization": "Bearer pkr_bearer"}
        )
        assert read_api_key(request) == "pkr_header"

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Basic dXNlcjpwYXNz"}, {"Authorization": "Bearer "}],
    )
    def test_no_credential(self, headers):
        assert read_api_key(_create_mock_request(headers)) is None


class TestVerifyCallbackSecret:
    def test_correct_secret(self, settings: Settings):
        request = _create_mock_request({"X-Verifier-Secret": VERIFIER_SECRET})
        assert verify_callback_secret(request, settings) is None

    def test_missing_secret(self, settings: Settings):
        with pytest.raises(MissingVerifierSecretError):
            verify_callback_secret(_create_mock_request(), settings)

    def test_wrong_secret(self, settings: Settings):
        request = _create_mock_request({"X-Verifier-Secret": "not-the-secret"})
        with pytest.raises(InvalidVerifierSecretError):
            verify_callback_secret(request, settings)

    def test_prefix_of_secret_is_rejected(self, settings: Settings):
        request = _create_mock_request({"X-Verifier-Secret": VERIFIER_SECRET[:-1]})
        with pytest.raises(InvalidVerifierSecretError):
            verify_callback_secret(request, settings)
