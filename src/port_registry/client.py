"""HTTP client for the registry API.

Error responses are turned back into the same exception classes the store
raises, so callers handle a conflict identically whether they talk to the
store directly or over HTTP.
"""

import re
from typing import Any

import httpx

from .config import get_settings
from .exceptions import (
    FilterRequiredError,
    NotFoundError,
    PortBusyError,
    PortTakenError,
    RangeExhaustedError,
    RegistryError,
    ServiceAlreadyAllocatedError,
    ValidationError,
)
from .schemas import AllocateRequest, AllocationRead, ErrorResponse, PortStatus, ReleaseRequest

DEFAULT_TIMEOUT = 10.0

_RANGE_RE = re.compile(r"(\d+)-(\d+)$")


def error_from_response(response: httpx.Response) -> RegistryError | None:
    """Rebuild the registry error carried by an error response, if any."""
    try:
        body = ErrorResponse.model_validate(response.json())
    except ValueError:
        return None

    error = body.error
    if error == PortTakenError.message and body.holder is not None:
        return PortTakenError(body.holder)
    if error == ServiceAlreadyAllocatedError.message and body.holder is not None:
        return ServiceAlreadyAllocatedError(body.holder)
    if error == PortBusyError.message:
        return PortBusyError()
    if error.startswith(RangeExhaustedError.message):
        match = _RANGE_RE.search(error)
        if match:
            return RangeExhaustedError(int(match.group(1)), int(match.group(2)))
        return RangeExhaustedError()
    if error == FilterRequiredError.message:
        return FilterRequiredError()
    if response.status_code == httpx.codes.NOT_FOUND:
        return NotFoundError(error)
    if response.status_code == httpx.codes.BAD_REQUEST:
        return ValidationError(error)
    return None


class RegistryClient:
    """Synchronous client for a running port-server."""

    def __init__(self, addr: str | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.addr = addr or get_settings().server_addr
        self.client = httpx.Client(
            base_url=f"http://{self.addr}",
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = self.client.request(method, path, **kwargs)
        if response.is_error:
            error = error_from_response(response)
            if error is not None:
                raise error
            response.raise_for_status()
        return response

    def health(self) -> None:
        """Raise if the server is unreachable or reports itself unhealthy."""
        response = self.client.get("/healthz")
        response.raise_for_status()

    def allocate(self, app: str, instance: str, service: str, port: int = 0) -> AllocationRead:
        payload = AllocateRequest(app=app, instance=instance, service=service, port=port)
        response = self._request("POST", "/v1/allocations", json=payload.model_dump())
        return AllocationRead.model_validate(response.json())

    def list(self, app: str = "", instance: str = "", service: str = "") -> list[AllocationRead]:
        params: dict[str, Any] = {
            k: v for k, v in {"app": app, "instance": instance, "service": service}.items() if v
        }
        response = self._request("GET", "/v1/allocations", params=params)
        return [AllocationRead.model_validate(item) for item in response.json()]

    def get(self, allocation_id: int) -> AllocationRead:
        response = self._request("GET", f"/v1/allocations/{allocation_id}")
        return AllocationRead.model_validate(response.json())

    def release_by_id(self, allocation_id: int) -> None:
        self._request("DELETE", f"/v1/allocations/{allocation_id}")

    def release_by_filter(
        self, app: str = "", instance: str = "", service: str = "", port: int = 0
    ) -> int:
        payload = ReleaseRequest(app=app, instance=instance, service=service, port=port)
        response = self._request("DELETE", "/v1/allocations", json=payload.model_dump())
        return response.json()["deleted"]

    def check_port(self, port: int) -> PortStatus:
        response = self._request("GET", f"/v1/ports/{port}")
        return PortStatus.model_validate(response.json())
