from __future__ import annotations

from ..session import SessionContext
from .api_credentials import PlatformApiCredentials
from .devices import PlatformDevices
from .service_provisioning import PlatformServices


class PlatformNamespace:
    """
    Grouping for HPE GreenLake platform functionality:

        glops.platform.services...
        glops.platform.devices...
        glops.platform.api_credentials...
    """

    def __init__(self, context: SessionContext) -> None:
        self.services = PlatformServices(context)
        self.devices = PlatformDevices(context, self.services)
        self.api_credentials = PlatformApiCredentials(context, self.services)
