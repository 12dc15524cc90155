from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .config import GreenLakeConfig
from .errors import UnknownRegion
from .models import ApiCredential
from .services import GreenLakeServiceRegistry

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """
    Everything one glops session needs, passed explicitly to each namespace.

    api_credentials is appended to by API credential creation and pruned by
    removal. It is not safe for concurrent use.
    """
    services: GreenLakeServiceRegistry
    config: GreenLakeConfig
    api_credentials: List[ApiCredential] = field(default_factory=list)

    @property
    def regions(self) -> List[str]:
        return sorted(self.config.regions)

    def com_base_url(self, region: str) -> str:
        if not region:
            raise UnknownRegion("A Compute Ops Management region is required")
        if self.config.regions:
            try:
                return self.config.regions[region].rstrip("/")
            except KeyError:
                raise UnknownRegion(
                    f"Region '{region}' is not configured. Known regions: {', '.join(self.regions)}"
                ) from None
        return self.config.com_url_template.format(region=region).rstrip("/")

    def com_url(self, region: str, path: str) -> str:
        return f"{self.com_base_url(region)}{path}"

    def glp_url(self, path: str) -> str:
        return f"{self.config.glp_base_url.rstrip('/')}{path}"

    # ------------ credential cache ------------

    def find_credential(self, name: str) -> Optional[ApiCredential]:
        for cred in self.api_credentials:
            if cred.name == name:
                return cred
        return None

    def add_credential(self, credential: ApiCredential) -> None:
        self.api_credentials.append(credential)
        logger.debug("Cached API credential '%s'", credential.name)

    def remove_credential(self, name: str) -> bool:
        before = len(self.api_credentials)
        self.api_credentials[:] = [c for c in self.api_credentials if c.name != name]
        return len(self.api_credentials) != before
