"""HTTP client for the remote meal analysis endpoint."""

from dataclasses import dataclass

import httpx

from meal_capture.services.analysis import AnalysisClient


@dataclass
class HttpxAnalysisClient(AnalysisClient):
    """HTTPX-backed analysis endpoint client."""

    endpoint_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 60.0

    @classmethod
    def create(
        cls, endpoint_url: str, timeout_seconds: float = 60.0
    ) -> "HttpxAnalysisClient":
        """Create an analysis client with a managed httpx session."""
        return cls(
            endpoint_url=endpoint_url,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def analyze(self, body: dict[str, object]) -> object:
        """POST the analysis request and return the decoded body.

        Non-JSON bodies are returned as text so callers can fall back to
        free-text parsing.
        """
        response = await self.http_client.post(
            self.endpoint_url,
            json=body,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
