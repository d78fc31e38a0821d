"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code maps to correct HTTP status
- Retired endpoints carry a hint
- LLM errors reach the client with a generic message
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vid0.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    ForbiddenError,
    GoneError,
    InvalidRequestError,
    NotFoundError,
)
from vid0.responses import (
    api_error_handler,
    error_response,
    llm_error_handler,
    success_response,
    unhandled_exception_handler,
)
from vid0.services.llm import LLMError, LLMErrorClass


class TestEnvelopes:
    def test_error_response_shape(self):
        response = error_response(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found", request_id="r1")
        assert response == {
            "error": {"code": "E_CHAT_NOT_FOUND", "message": "Chat not found", "request_id": "r1"}
        }

    def test_error_response_extra_fields_skip_none(self):
        response = error_response(ApiErrorCode.E_GONE, "Gone", hint=None)
        assert "hint" not in response["error"]

    def test_success_response(self):
        assert success_response([1, 2]) == {"data": [1, 2]}
        assert success_response(None) == {"data": None}


class TestErrorCodeToStatus:
    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_FORBIDDEN, 403),
            (ApiErrorCode.E_MODEL_REQUIRES_AUTH, 403),
            (ApiErrorCode.E_MODEL_REQUIRES_KEY, 403),
            (ApiErrorCode.E_CHAT_NOT_FOUND, 404),
            (ApiErrorCode.E_PROJECT_NOT_FOUND, 404),
            (ApiErrorCode.E_MESSAGE_TOO_LONG, 400),
            (ApiErrorCode.E_GONE, 410),
            (ApiErrorCode.E_DAILY_LIMIT_REACHED, 429),
            (ApiErrorCode.E_DAILY_FILE_LIMIT_REACHED, 429),
            (ApiErrorCode.E_LLM_RATE_LIMIT, 429),
            (ApiErrorCode.E_LLM_TIMEOUT, 504),
            (ApiErrorCode.E_LLM_PROVIDER_DOWN, 502),
            (ApiErrorCode.E_USAGE_UNAVAILABLE, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_error_code_maps_to_correct_status(self, code, expected_status):
        assert ERROR_CODE_TO_STATUS[code] == expected_status

    def test_every_llm_error_class_is_an_api_code(self):
        for error_class in LLMErrorClass:
            assert ApiErrorCode(error_class.value) in ERROR_CODE_TO_STATUS


class TestApiErrorClasses:
    def test_api_error_derives_status_code(self):
        assert ApiError(ApiErrorCode.E_FORBIDDEN, "Access denied").status_code == 403

    def test_defaults(self):
        assert NotFoundError().status_code == 404
        assert ForbiddenError().code == ApiErrorCode.E_FORBIDDEN
        assert InvalidRequestError().code == ApiErrorCode.E_INVALID_REQUEST

    def test_gone_error_carries_hint(self):
        error = GoneError("Removed", "Use /api/v2/projects instead.")
        assert error.status_code == 410
        assert error.hint == "Use /api/v2/projects instead."


def _app_raising(exc: Exception) -> TestClient:
    test_app = FastAPI()

    @test_app.get("/boom")
    def boom():
        raise exc

    test_app.add_exception_handler(ApiError, api_error_handler)
    test_app.add_exception_handler(LLMError, llm_error_handler)
    test_app.add_exception_handler(Exception, unhandled_exception_handler)
    return TestClient(test_app, raise_server_exceptions=False)


class TestExceptionHandlers:
    def test_gone_error_includes_hint(self):
        response = _app_raising(GoneError("Removed", "Go elsewhere")).get("/boom")
        assert response.status_code == 410
        assert response.json()["error"]["hint"] == "Go elsewhere"

    def test_llm_error_hides_provider_message(self):
        client = _app_raising(LLMError(LLMErrorClass.INVALID_KEY, "sk-live-123 rejected by openai"))
        response = client.get("/boom")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_LLM_INVALID_KEY"
        assert "sk-live-123" not in response.text

    def test_unhandled_exception_returns_500_without_details(self):
        response = _app_raising(RuntimeError("SECRET_INTERNAL_DETAIL")).get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"
        assert "SECRET_INTERNAL_DETAIL" not in response.text


class TestRequestValidation:
    def test_malformed_json_returns_400(self, client: TestClient):
        response = client.post(
            "/api/create-chat",
            content="{invalid json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Malformed JSON body"

    def test_unknown_route_is_404_envelope(self, client: TestClient):
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_NOT_FOUND"

    def test_wrong_method_is_405_envelope(self, client: TestClient):
        response = client.post("/health")
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"
