"""
Unit tests for the Result monad and its payload rendering.
"""

from __future__ import annotations

import pytest

from cfdi_sealer.failure import ErrorCode
from cfdi_sealer.result import Failure, Result, Success
from tests.assertions import ResultAssertions

# ─────────────────────── Construction ───────────────────────


class TestConstruction:
    def test_success_holds_value(self) -> None:
        result = Result.success(42)
        assert result.is_success()
        assert not result.is_failure()
        assert result.value() == 42

    def test_success_rejects_none(self) -> None:
        with pytest.raises(TypeError):
            Success(None)

    def test_failure_holds_description(self) -> None:
        result: Result[int] = Result.failure(ErrorCode.NOT_FOUND, "missing")
        error = ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)
        assert error.message == "missing"
        assert error.exception is None

    def test_value_on_failure_raises(self) -> None:
        result: Result[int] = Result.failure(ErrorCode.NOT_FOUND, "missing")
        with pytest.raises(ValueError, match="missing"):
            result.value()

    def test_error_on_success_raises(self) -> None:
        with pytest.raises(ValueError):
            Result.success("x").error()

    def test_bool_reflects_track(self) -> None:
        assert Result.success(1)
        assert not Result.failure(ErrorCode.BUSINESS_RULE_ERROR, "boom")


# ─────────────────────── Transformations ───────────────────────


class TestTransformations:
    def test_flat_map_chains(self) -> None:
        result = Result.success(2).flat_map(lambda v: Result.failure(ErrorCode.VALIDATION_ERROR, f"bad {v}"))
        ResultAssertions.assert_failure_message_contains(result, "bad 2")

    def test_flat_map_short_circuits_failure(self) -> None:
        calls: list[int] = []
        result: Result[int] = Result.failure(ErrorCode.NOT_FOUND, "x")
        chained = result.flat_map(lambda v: calls.append(v) or Result.success(v))
        ResultAssertions.assert_failure(chained, ErrorCode.NOT_FOUND)
        assert calls == []

    def test_either_routes_by_track(self) -> None:
        ok = Result.success(1).either(lambda v: f"ok {v}", lambda e: e.message)
        ko = Result.failure(ErrorCode.NOT_FOUND, "nope").either(lambda v: f"ok {v}", lambda e: e.message)
        assert (ok, ko) == ("ok 1", "nope")

    def test_pattern_matching(self) -> None:
        match Result.success("v"):
            case Success(value):
                assert value == "v"
            case Failure(_):
                pytest.fail("expected success")


# ─────────────────────── Payload ───────────────────────


class TestToPayload:
    def test_success_payload(self) -> None:
        assert Result.success({"clave": "03"}).to_payload() == {"status": True, "data": {"clave": "03"}}

    def test_failure_payload_has_null_data_and_message(self) -> None:
        payload = Result.failure(ErrorCode.VALIDATION_ERROR, "No document provided").to_payload()
        assert payload == {"status": False, "data": None, "message": "No document provided"}
