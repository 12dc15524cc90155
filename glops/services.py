from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

import requests

from .auth import GreenLakeAuthConfig
from .config import GreenLakeConfig
from .errors import RemoteOperationError

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"

_SECRET_KEY_MARKERS = ("secret", "password", "token")
_REDACTED = "[REDACTED]"

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]], None]


class GreenLakeServiceRegistry:
    """
    Wraps a requests.Session configured for GreenLake platform and
    Compute Ops Management APIs.

    invoke() is the single place where requests are sent. It never retries;
    waiting for eventual consistency belongs to the convergence poller.
    """

    def __init__(
        self,
        auth: GreenLakeAuthConfig,
        config: GreenLakeConfig,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        token = auth.resolve_token()

        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        self._session = session or requests.Session()
        self._session.headers.update(self._headers)

        # Parsed body of the most recent failed request
        self.last_error_response: Any = None

    @property
    def config(self) -> GreenLakeConfig:
        return self._config

    def invoke(
        self,
        method: str,
        url: str,
        body: Optional[Any] = None,
        content_type: Optional[str] = None,
        dry_run: bool = False,
        params: Params = None,
    ) -> Any:
        """
        Send one request and return the parsed body.

        With dry_run the request is rendered to the preview stream instead
        and None is returned.
        """
        method = method.upper()
        headers: Dict[str, str] = {}
        if body is not None:
            headers["Content-Type"] = content_type or "application/json"

        if dry_run:
            self.render(method, url, body=body, headers=headers, params=params)
            return None

        self.last_error_response = None
        logger.debug("%s %s", method, url)
        try:
            resp = self._send(method, url, body=body, headers=headers, params=params)
        except requests.RequestException as exc:
            raise RemoteOperationError(
                f"{method} {url} failed: {exc}",
                method=method,
                url=url,
            ) from exc

        parsed = self._parse(resp)
        if 200 <= resp.status_code < 300:
            return parsed

        self.last_error_response = parsed
        logger.debug("%s %s returned %s", method, url, resp.status_code)
        raise RemoteOperationError(
            f"GreenLake API error {resp.status_code}: {error_detail(parsed)}",
            status_code=resp.status_code,
            body=parsed,
            method=method,
            url=url,
        )

    def render(
        self,
        method: str,
        url: str,
        *,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Params = None,
    ) -> str:
        """Write a request preview with credentials redacted and return it."""
        text = render_request(
            method,
            url,
            headers={**self._headers, **(headers or {})},
            body=body,
            params=params,
        )
        print(text, file=self._config.preview_stream)
        return text

    # ------------ internal helpers ------------

    def _send(
        self,
        method: str,
        url: str,
        *,
        body: Optional[Any],
        headers: Dict[str, str],
        params: Params,
    ) -> requests.Response:
        data = json.dumps(body) if body is not None else None
        return self._session.request(
            method,
            url,
            data=data,
            headers=headers,
            params=params,
            timeout=self._config.request_timeout,
        )

    @staticmethod
    def _parse(resp: requests.Response) -> Any:
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return resp.text


def error_detail(body: Any) -> str:
    """
    Pull the human readable message out of a GreenLake error body.
    """
    if isinstance(body, dict):
        for key in ("message", "errorMessage", "detail", "error_description", "error"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value)
        return json.dumps(body, sort_keys=True)
    if body is None:
        return ""
    return str(body)


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (_REDACTED if _is_secret_key(k) else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def render_request(
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    body: Optional[Any] = None,
    params: Params = None,
) -> str:
    full_url = f"{url}?{urlencode(params, doseq=True)}" if params else url

    shown_headers = {}
    for key, value in headers.items():
        if key.lower() == "authorization":
            scheme = str(value).split(" ", 1)[0]
            shown_headers[key] = f"{scheme} {_REDACTED}"
        else:
            shown_headers[key] = value

    lines = [
        "Dry run: the following request was not sent.",
        f"{method} {full_url}",
        "Headers:",
        json.dumps(shown_headers, indent=2, sort_keys=True),
        "Body:",
        json.dumps(redact(body), indent=2, sort_keys=True) if body is not None else "(none)",
    ]
    return "\n".join(lines)


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_KEY_MARKERS)
