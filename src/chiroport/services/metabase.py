"""Signed, time-limited analytics dashboard embed URLs."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from jose import jwt

from chiroport.core.settings import settings


@dataclass(frozen=True)
class MetabaseEmbedConfig:
    site_url: str
    secret: str
    dashboard_id: int
    ttl_seconds: int


def load_metabase_config() -> MetabaseEmbedConfig | None:
    """Return embed configuration, or None when any required value is missing."""
    if not (settings.metabase_site_url and settings.metabase_embed_secret):
        return None
    if settings.metabase_dashboard_id is None:
        return None
    return MetabaseEmbedConfig(
        site_url=settings.metabase_site_url,
        secret=settings.metabase_embed_secret,
        dashboard_id=settings.metabase_dashboard_id,
        ttl_seconds=settings.metabase_embed_ttl_seconds or 600,
    )


def build_metabase_embed_url(
    config: MetabaseEmbedConfig,
    *,
    params: dict[str, Any] | None = None,
    now: float | None = None,
) -> str:
    """Return the dashboard embed URL with an HS256 token in the path."""
    issued = int(now if now is not None else time.time())
    payload = {
        "resource": {"dashboard": config.dashboard_id},
        "params": params or {},
        "exp": issued + config.ttl_seconds,
    }
    token = jwt.encode(payload, config.secret, algorithm="HS256")
    site_url = config.site_url.rstrip("/")
    return f"{site_url}/embed/dashboard/{token}#bordered=true&titled=true"
