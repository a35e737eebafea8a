# tests/common/test_errors.py
"""
Тесты таксономии ошибок.
"""

import pytest

from src.common.errors import (
    AppError,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
    ValidationError,
)


class TestErrorTaxonomy:
    """HTTP-статусы и машинные коды."""

    @pytest.mark.parametrize(
        "error_cls, status, code",
        [
            (BadRequestError, 400, "BAD_REQUEST"),
            (ValidationError, 400, "VALIDATION_ERROR"),
            (UnauthorizedError, 401, "AUTH_UNAUTHORIZED"),
            (ForbiddenError, 403, "AUTH_FORBIDDEN"),
            (ConflictError, 409, "RESOURCE_CONFLICT"),
            (RequestTimeoutError, 504, "TIMEOUT"),
            (InternalError, 500, "INTERNAL_ERROR"),
        ],
    )
    def test_status_and_code(self, error_cls, status, code) -> None:
        error = error_cls("message")

        assert isinstance(error, AppError)
        assert error.status_code == status
        assert error.error_code == code

    def test_not_found_carries_entity(self) -> None:
        error = NotFoundError("payout")

        assert error.status_code == 404
        assert error.error_code == "RESOURCE_NOT_FOUND"
        assert error.entity == "payout"
        assert error.message == "payout not found"

    def test_to_dict_envelope_body(self) -> None:
        body = BadRequestError("insufficient points").to_dict()

        assert body == {"code": 400, "error_code": "BAD_REQUEST", "message": "insufficient points"}

    def test_to_dict_includes_details(self) -> None:
        assert NotFoundError("ride").to_dict()["details"] == {"entity": "ride"}
