# tests/conftest.py
import io
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add repo root to sys.path so `import glops` works when running pytest
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from glops import GreenLake  # noqa: E402
from glops.auth import GreenLakeAuthConfig  # noqa: E402
from glops.config import GreenLakeConfig  # noqa: E402
from glops.services import GreenLakeServiceRegistry  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int, json_data: Any = None):
        self.status_code = status_code
        self._json_data = json_data
        self.headers: Dict[str, str] = {}

    @property
    def content(self) -> bytes:
        if self._json_data is None:
            return b""
        if isinstance(self._json_data, str):
            return self._json_data.encode()
        return json.dumps(self._json_data).encode()

    def json(self):
        if isinstance(self._json_data, str):
            raise ValueError("not json")
        return self._json_data

    @property
    def text(self):
        return str(self._json_data)


@dataclass
class Call:
    method: str
    url: str
    body: Any
    headers: Dict[str, str]
    params: Any


class FakeServices(GreenLakeServiceRegistry):
    """
    Service registry that never touches the network.

    Replies are registered per (method, url) as (status, body) tuples and
    consumed in order; the last reply of a route is repeated forever.
    A callable reply is invoked and may raise.
    """

    def __init__(self, config: GreenLakeConfig):
        super().__init__(GreenLakeAuthConfig(token="dummy-token"), config)
        self.calls: List[Call] = []
        self._routes: Dict[tuple, list] = {}

    def route(self, method: str, url: str, *replies) -> "FakeServices":
        self._routes[(method, url)] = list(replies)
        return self

    def _send(self, method, url, *, body, headers, params):
        self.calls.append(Call(method, url, body, dict(headers), params))
        replies = self._routes.get((method, url))
        if not replies:
            return FakeResponse(404, {"message": f"no route for {method} {url}"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply):
            reply = reply()
        status, data = reply
        return FakeResponse(status, data)

    def calls_to(self, method: str, url: Optional[str] = None) -> List[Call]:
        return [c for c in self.calls if c.method == method and (url is None or c.url == url)]

    @property
    def mutating_calls(self) -> List[Call]:
        return [c for c in self.calls if c.method != "GET"]


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def config(sleeps) -> GreenLakeConfig:
    return GreenLakeConfig(sleep=sleeps.append, output=io.StringIO())


@pytest.fixture
def services(config) -> FakeServices:
    return FakeServices(config)


@pytest.fixture
def gl(services) -> GreenLake:
    return GreenLake(services=services, config=services.config)
