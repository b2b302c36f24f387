from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import requests
from requests import Response

from ..errors import ProviderError, ProviderTimeout, QuotaExceeded


logger = logging.getLogger(__name__)


@dataclass
class RequestConfig:
    timeout: float = 10.0
    lookback_hours: int = 48


class HttpProvider:
    """Base class that adds timeouts and error normalization for HTTP providers."""

    name = "http"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or requests.Session()
        self._log = logging.getLogger(self.__class__.__name__)

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("Quota exceeded: %s", response.text)
            raise QuotaExceeded(f"{self.name}: quota exceeded")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text)
            raise ProviderError(f"{self.name}: HTTP {response.status_code}")
        return response

    def _request(self, method: str, url: str, timeout: Optional[float] = None, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=timeout or self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request timed out", exc_info=exc)
            raise ProviderTimeout(f"{self.name}: timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request failed", exc_info=exc)
            raise ProviderError(f"{self.name}: request failed") from exc
        return self._handle_response(response)

    def _json(self, response: Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON", exc_info=exc)
            raise ProviderError(f"{self.name}: invalid json") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: unexpected payload")
        return data


@contextmanager
def malformed_payload(provider: str) -> Iterator[None]:
    """Turn parsing errors on an unexpected payload shape into ``ProviderError``."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError, IndexError) as exc:
        raise ProviderError(f"{provider}: malformed payload") from exc


def safe_float(value: Optional[object]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def require(value: Optional[float], field_name: str, provider: str) -> float:
    if value is None:
        raise ProviderError(f"{provider}: missing {field_name}")
    return value


__all__ = ["HttpProvider", "RequestConfig", "malformed_payload", "safe_float", "require"]
