from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, TextIO

ConfirmCallback = Callable[[str], bool]
SleepFn = Callable[[float], None]


@dataclass
class GreenLakeConfig:
    """
    Behaviour switches shared by every namespace.

    regions maps a COM region name to its base URL. When empty, URLs are
    built from com_url_template and any region name is accepted.

    confirm is asked before destructive operations unless force is set.
    None means "always confirm", which is what non-interactive callers get.
    """
    dry_run: bool = False
    force: bool = False

    regions: Dict[str, str] = field(default_factory=dict)
    glp_base_url: str = "https://global.api.greenlake.hpe.com"
    com_url_template: str = "https://{region}-api.compute.cloud.hpe.com"
    request_timeout: float = 60.0

    # Convergence polling
    poll_max_attempts: int = 10
    poll_interval: float = 2.0
    activity_max_attempts: int = 30

    confirm: Optional[ConfirmCallback] = None
    sleep: SleepFn = time.sleep

    # Where dry-run previews are written
    output: Optional[TextIO] = None

    @property
    def preview_stream(self) -> TextIO:
        return self.output if self.output is not None else sys.stdout

    def confirmed(self, prompt: str) -> bool:
        if self.force or self.confirm is None:
            return True
        return bool(self.confirm(prompt))
