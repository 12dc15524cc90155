from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from ..errors import ConvergenceTimeout
from ..models import ConvergenceCondition

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Service provisioning is always bounded at 10 polls, 2 seconds apart
PROVISION_MAX_ATTEMPTS = 10
PROVISION_INTERVAL = 2.0


def await_condition(
    poll: Callable[[], T],
    predicate: Callable[[T], bool],
    max_attempts: int,
    interval: float,
    *,
    resource: str,
    region: Optional[str] = None,
    description: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Re-query until predicate(result) holds, blocking between polls.

    Raises ConvergenceTimeout after `max_attempts` unsuccessful polls. The
    caller cannot know the remote state at that point, so the error is
    meant to abort the batch rather than become a per-item status.
    """
    condition = ConvergenceCondition(
        predicate=predicate,
        max_attempts=max_attempts,
        interval=interval,
        description=description,
    )

    for attempt in range(1, condition.max_attempts + 1):
        result = poll()
        if condition.predicate(result):
            logger.debug("%s converged after %d poll(s)", resource, attempt)
            return result
        if attempt < condition.max_attempts:
            logger.debug(
                "Waiting for %s (%s), attempt %d/%d",
                resource, description or "condition", attempt, condition.max_attempts,
            )
            sleep(condition.interval)

    where = f" in region '{region}'" if region else ""
    raise ConvergenceTimeout(
        f"Timed out waiting for {resource}{where}"
        f"{': ' + description if description else ''} "
        f"after {condition.max_attempts} attempts. The operation may still complete remotely.",
        resource=resource,
        region=region,
        attempts=condition.max_attempts,
    )
