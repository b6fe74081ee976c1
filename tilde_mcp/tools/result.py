"""Structured outcome of a paid HTTP invocation."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationResult:
    """Result of one tool invocation.

    Successful results carry ``status`` and ``data``; failures carry a
    ``message`` and, when the server answered, its ``status`` and ``data``.
    """

    success: bool
    status: Optional[int] = None
    data: Any = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, status: int, data: Any) -> "InvocationResult":
        return cls(success=True, status=status, data=data)

    @classmethod
    def failure(
        cls,
        message: str,
        status: Optional[int] = None,
        data: Any = None,
    ) -> "InvocationResult":
        return cls(success=False, status=status, data=data, message=message)

    @classmethod
    def from_response(
        cls,
        response: httpx.Response,
        payment_error: Optional[str] = None,
    ) -> "InvocationResult":
        """Build a result from the final response of a payment-aware request."""
        data = response_data(response)
        if response.is_success:
            return cls.ok(response.status_code, data)
        message = f"Request failed with status code {response.status_code}"
        if payment_error:
            message = f"{message}: {payment_error}"
        return cls.failure(message, status=response.status_code, data=data)

    @classmethod
    def from_transport_error(cls, error: Exception, timeout_seconds: float) -> "InvocationResult":
        """Build a failure for a request that never produced a response."""
        if isinstance(error, (TimeoutError, httpx.TimeoutException)):
            return cls.failure(f"timeout of {int(timeout_seconds * 1000)}ms exceeded")
        return cls.failure(str(error) or type(error).__name__)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "status": self.status, "data": self.data}
        result: dict[str, Any] = {"success": False}
        if self.status is not None:
            result["status"] = self.status
        result["message"] = self.message
        if self.data is not None:
            result["data"] = self.data
        return result


def response_data(response: httpx.Response) -> Any:
    """Response body as JSON when it parses, else as text."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
