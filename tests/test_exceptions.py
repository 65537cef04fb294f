"""Tests for the problem-detail exception catalogue."""
import pytest

from marketing_api import exceptions
from marketing_api.exceptions import (
    BusinessRuleError,
    ConflictError,
    ContactSourceError,
    ErrorCode,
    NotFoundError,
    RuleValidationError,
    SegmentEvaluationTimeout,
)


class TestErrorCatalogue:
    """Every exception maps to its own status and code."""

    @pytest.mark.parametrize(
        "exc, status, code",
        [
            (NotFoundError("Segment", "abc"), 404, "RES_001"),
            (RuleValidationError([{"node_id": "c1", "message": "unknown field"}]), 422, "VAL_002"),
            (ConflictError("Segment name already exists"), 409, "RES_003"),
            (BusinessRuleError("Segment is not static"), 400, "BIZ_001"),
            (ContactSourceError("connection reset"), 502, "EXT_002"),
            (SegmentEvaluationTimeout(2.5, 3), 504, "SRV_003"),
        ],
    )
    def test_status_and_code(self, exc, status, code):
        assert exc.status_code == status
        assert exc.to_problem_detail().code == code

    def test_codes_are_unique(self):
        values = [c.value for c in ErrorCode]
        assert len(values) == len(set(values))

    def test_catalogue_holds_only_emitted_codes(self):
        assert {c.value for c in ErrorCode} == {
            "VAL_001", "VAL_002",
            "RES_001", "RES_003",
            "BIZ_001",
            "EXT_001", "EXT_002",
            "SRV_001", "SRV_002", "SRV_003",
        }

    def test_request_errors_have_no_separate_exception(self):
        # body and query errors are raised by FastAPI and rendered by the validation handler
        assert not hasattr(exceptions, "ValidationError")
