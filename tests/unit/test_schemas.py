"""Schema tests."""

from datetime import UTC, datetime

from pydantic import ValidationError as PydanticValidationError
import pytest

from port_registry.schemas import (
    AllocateRequest,
    AllocationFilter,
    ErrorResponse,
    ReleaseRequest,
    ReleaseResult,
)


class TestAllocationFilter:
    def test_defaults_are_empty(self):
        assert AllocationFilter().is_empty()

    def test_identifiers_trimmed(self):
        f = AllocationFilter(app="  a ", instance="\ti", service=None)

        assert (f.app, f.instance, f.service) == ("a", "i", "")

    def test_whitespace_only_is_empty(self):
        assert AllocationFilter(app="   ", service="\n").is_empty()

    def test_port_alone_is_a_filter(self):
        assert not AllocationFilter(port=3000).is_empty()

    def test_null_port_is_zero(self):
        assert AllocationFilter(port=None).port == 0

    def test_release_request_is_a_filter(self):
        r = ReleaseRequest.model_validate({"app": " web "})

        assert r.app == "web"
        assert not r.is_empty()


def test_allocate_request_defaults():
    r = AllocateRequest.model_validate({"app": "a", "instance": "i", "service": "s"})

    assert r.port == 0


def test_error_response_omits_holder(allocation_read):
    body = ErrorResponse(error="port in use on system")

    assert body.model_dump(exclude_none=True) == {"error": "port in use on system"}

    with_holder = ErrorResponse(error="port already allocated", holder=allocation_read)
    dumped = with_holder.model_dump(mode="json")
    assert dumped["holder"]["port"] == 3000  # noqa: PLR2004
    assert dumped["holder"]["created_at"].startswith("2026-01-01T00:00:00")


def test_release_result_rejects_negative():
    with pytest.raises(PydanticValidationError):
        ReleaseResult(deleted=-1)


def test_allocation_read_round_trip_from_json(allocation_read):
    restored = type(allocation_read).model_validate_json(allocation_read.model_dump_json())

    assert restored == allocation_read
    assert restored.created_at == datetime(2026, 1, 1, tzinfo=UTC)
