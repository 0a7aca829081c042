"""Tests for the error taxonomy and store failure wrapping."""
import pytest
from sqlalchemy.exc import OperationalError

from memoir.database import check_database_health, store_operation
from memoir.errors import (
    InvalidStateError,
    NotFoundError,
    StoreFailureError,
    UnauthorizedError,
    ValidationError,
    format_error,
)


class TestFormatError:

    def test_not_found(self):
        status, body = format_error(NotFoundError("Merger", details={"merger_id": "m1"}))

        assert status == 404
        assert body["error"]["code"] == "NOT_FOUND"
        assert body["error"]["message"] == "Merger not found"
        assert body["error"]["details"] == {"merger_id": "m1"}
        assert body["error"]["timestamp"].endswith("Z")

    def test_invalid_state_hint(self):
        status, body = format_error(InvalidStateError("Not all participants have approved"))

        assert status == 409
        assert "hint" in body["error"]
        assert "details" not in body["error"]

    def test_unauthorized(self):
        status, body = format_error(UnauthorizedError())

        assert status == 403
        assert body["error"]["message"] == "Not a participant"

    def test_validation_error(self):
        status, body = format_error(ValidationError("Invalid perspective", details={"fields": [{"field": "narrative"}]}))

        assert status == 422
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["fields"] == [{"field": "narrative"}]
        assert "hint" in body["error"]

    def test_generic_exception(self):
        status, body = format_error(ValueError("boom"))

        assert status == 500
        assert body["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "boom" not in body["error"]["message"]


class TestStoreOperation:

    def test_sqlalchemy_error_wrapped(self, db):
        cause = OperationalError("UPDATE story_mergers", {}, Exception("database is locked"))

        with pytest.raises(StoreFailureError) as exc_info:
            with store_operation(db, "publish_merger"):
                raise cause

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.details == {"operation": "publish_merger"}
        assert exc_info.value.status_code == 500

    def test_domain_error_passes_through(self, db):
        with pytest.raises(NotFoundError):
            with store_operation(db, "approve_merger"):
                raise NotFoundError("Merger")


def test_database_health_check():
    health = check_database_health()

    assert health["status"] == "healthy"
    assert health["response_time_ms"] >= 0
