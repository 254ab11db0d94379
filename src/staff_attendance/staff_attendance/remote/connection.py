from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..core.constants import DEFAULT_LIST_TITLE, DEFAULT_REQUEST_TIMEOUT

# Supplied by the auth layer. Returning None means "not signed in".
TokenProvider = Callable[[], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class RemoteStoreConfig:
    site_url: str
    list_title: str = DEFAULT_LIST_TITLE
    timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def api_base_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/_api/web"


def static_token_provider(token: Optional[str]) -> TokenProvider:
    """Token provider for scripts and development, backed by a fixed token."""

    async def provide() -> Optional[str]:
        return token or None

    return provide
