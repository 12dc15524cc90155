from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
import os


TokenProvider = Callable[[], str]


@dataclass
class GreenLakeAuthConfig:
    """
    Defines how glops obtains the bearer token for GreenLake APIs.

    Priority for token resolution:
      1) token          (explicit)
      2) token_provider (callable, e.g. a wrapper around an OAuth client)
      3) token from env var `token_env_var` (default: GREENLAKE_TOKEN)

    Obtaining the token itself (client-credentials flow, SSO ...) happens
    outside glops.
    """
    token: Optional[str] = None
    token_env_var: str = "GREENLAKE_TOKEN"
    token_provider: Optional[TokenProvider] = None

    def resolve_token(self) -> str:
        if self.token:
            return self.token

        if self.token_provider:
            t = self.token_provider()
            if not t:
                raise ValueError("GreenLake token_provider returned an empty token")
            return t

        env_val = os.getenv(self.token_env_var)
        if not env_val:
            raise ValueError(
                f"No GreenLake token provided. Set token, token_provider, "
                f"or export {self.token_env_var}."
            )
        return env_val
