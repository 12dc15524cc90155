from __future__ import annotations

from ..session import SessionContext
from .activities import ComActivities
from .external_services import ComExternalServices
from .webhooks import ComWebhooks


class ComNamespace:
    """
    Grouping for Compute Ops Management functionality:

        glops.com.webhooks...
        glops.com.external_services...
        glops.com.activities...
    """

    def __init__(self, context: SessionContext) -> None:
        self.activities = ComActivities(context)
        self.webhooks = ComWebhooks(context)
        self.external_services = ComExternalServices(context, self.activities)
