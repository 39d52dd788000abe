"""Unit tests for API exceptions and domain error mapping."""

import pytest
from fastapi import status

from app.core.activities.errors import (
    ActivityNotFoundError,
    ActivityValidationError,
    AlreadyCompletedError,
    InvalidTransitionError,
)
from app.core.exceptions import (
    APIException,
    api_exception_from_activity_error,
    raise_forbidden,
    raise_unauthorized,
)


class TestAPIException:
    """Tests for APIException class."""

    def test_api_exception_default_status(self) -> None:
        exc = APIException(code="TEST_ERROR", message="Test error")
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.detail == {
            "error": {"code": "TEST_ERROR", "message": "Test error", "details": None}
        }

    def test_raise_helpers(self) -> None:
        with pytest.raises(APIException) as exc_info:
            raise_unauthorized()
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

        with pytest.raises(APIException) as exc_info:
            raise_forbidden(details={"required_permission": "activities.manage"})
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN
        assert exc_info.value.code == "AUTH_INSUFFICIENT_PERMISSIONS"


class TestActivityErrorMapping:
    """Domain errors map onto status codes and the error envelope."""

    @pytest.mark.parametrize(
        ("error", "code", "status_code"),
        [
            (ActivityNotFoundError("42"), "ACTIVITY_NOT_FOUND", 404),
            (InvalidTransitionError("open", "closed", ["in_progress"]), "INVALID_TRANSITION", 409),
            (AlreadyCompletedError("42"), "ACTIVITY_ALREADY_COMPLETED", 409),
            (ActivityValidationError("bad", field="rating"), "VALIDATION_ERROR", 422),
        ],
    )
    def test_mapping(self, error, code, status_code) -> None:
        exc = api_exception_from_activity_error(error)
        assert exc.code == code
        assert exc.status_code == status_code
        assert exc.message == error.message

    def test_not_found_message_names_kind(self) -> None:
        error = ActivityNotFoundError("42", kind="support_ticket")
        assert error.message == "Support ticket not found (ID: 42)"
        assert error.details == {"activity_id": "42"}

    def test_invalid_transition_details(self) -> None:
        error = InvalidTransitionError("open", "closed", ["escalated", "in_progress"])
        assert error.details == {"from": "open", "to": "closed", "allowed": ["escalated", "in_progress"]}
        assert "Allowed states: escalated, in_progress" in error.message

    def test_validation_details_keyed_by_field(self) -> None:
        assert ActivityValidationError("too big", field="rating").details == {"rating": ["too big"]}
        assert ActivityValidationError("nope").details is None
