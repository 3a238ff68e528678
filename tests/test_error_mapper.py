from __future__ import annotations

import pytest

from tei_transfer_sdk.error_mapper import map_error
from tei_transfer_sdk.exceptions import (
    ApiError,
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionError,
    ServerError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (400, ValidationError),
        (401, AuthError),
        (403, PermissionError),
        (404, NotFoundError),
        (409, ConflictError),
        (422, ValidationError),
        (500, ServerError),
        (503, ServerError),
        (418, ApiError),
    ],
)
def test_error_mapper_classes(status: int, expected: type[ApiError]) -> None:
    err = map_error(status, {"message": "nope"}, "trace")
    assert type(err) is expected
    assert err.status_code == status
    assert err.trace_id == "trace"


def test_error_mapper_reads_web_api_fields() -> None:
    err = map_error(
        409,
        {
            "httpStatusCode": 409,
            "status": "ERROR",
            "errorCode": "E1000",
            "message": "Import conflicts",
            "response": {"importSummaries": []},
        },
        "trace-409",
    )
    assert err.code == "E1000"
    assert err.message == "Import conflicts"
    assert err.details == {"importSummaries": []}
    assert err.raw_payload["httpStatusCode"] == 409
    assert "trace_id=trace-409" in str(err)


def test_error_mapper_defaults_without_payload() -> None:
    err = map_error(500, None, None)
    assert err.code == "HTTP_ERROR"
    assert err.message == "Request failed"
    assert err.raw_payload == {}
    assert err.is_client_error is False
