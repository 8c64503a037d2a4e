from http import HTTPStatus
from typing import Any

import httpx

from georeg.errors import ServiceUnavailableError, SubmissionValidationError, UnknownSubmissionError
from georeg.models.common import SubmissionResult


class RegistrationClient:
    """Client for the registration backend.

    Transport-level detail is collapsed into three outcomes: the backend
    rejected the payload (4xx with `{"error": "..."}`), the backend is down
    or unreachable (5xx, connection errors, timeouts), or something else.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000/api",
        path: str = "/user-input/register",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
        self._timeout_seconds = timeout_seconds

    @property
    def url(self) -> str:
        return self._url

    async def register(self, body: dict[str, Any]) -> SubmissionResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                headers={"Content-Type": "application/json"},
            ) as client:
                response = await client.post(self._url, json=body)
        except httpx.RequestError as exc:
            raise ServiceUnavailableError(f"Registration service is unreachable: {repr(exc)}") from exc

        status_code = response.status_code

        if HTTPStatus.OK <= status_code < HTTPStatus.MULTIPLE_CHOICES:
            return SubmissionResult(status_code=status_code, body=self._parse_json(response) or {})

        if status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            raise ServiceUnavailableError(f"Registration service returned HTTP {status_code}.")

        if HTTPStatus.BAD_REQUEST <= status_code < HTTPStatus.INTERNAL_SERVER_ERROR:
            data = self._parse_json(response)
            message = data.get("error") if data else None
            if isinstance(message, str) and message.strip():
                raise SubmissionValidationError(message)
            raise UnknownSubmissionError(f"Registration failed with HTTP {status_code}.")

        raise UnknownSubmissionError(f"Unexpected registration response HTTP {status_code}.")

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any] | None:
        """Best-effort JSON decoding; backends do not always answer with a JSON object."""
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
