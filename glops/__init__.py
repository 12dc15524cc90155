from __future__ import annotations

from typing import Optional

from .auth import GreenLakeAuthConfig
from .com import ComNamespace
from .config import GreenLakeConfig
from .platform import PlatformNamespace
from .services import GreenLakeServiceRegistry
from .session import SessionContext

__all__ = ["GreenLake", "GreenLakeAuthConfig", "GreenLakeConfig"]


class GreenLake:
    def __init__(
        self,
        *,
        auth: Optional[GreenLakeAuthConfig] = None,
        config: Optional[GreenLakeConfig] = None,
        services: Optional[GreenLakeServiceRegistry] = None,
    ) -> None:
        self.config = config or GreenLakeConfig()

        if services is not None and auth is not None:
            raise ValueError("Provide either 'services' or 'auth', not both.")

        if services is None:
            services = GreenLakeServiceRegistry(auth or GreenLakeAuthConfig(), self.config)

        self.context = SessionContext(services=services, config=self.config)

        # Compute Ops Management namespace
        self.com = ComNamespace(self.context)

        # GreenLake platform namespace
        self.platform = PlatformNamespace(self.context)
