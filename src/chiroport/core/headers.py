"""Security response headers applied to every non-static response."""
from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlsplit

from chiroport.core.settings import Settings, settings


@dataclass(frozen=True)
class SecurityHeaderPolicy:
    """Immutable description of the security header set."""

    script_origins: tuple[str, ...] = ()
    style_origins: tuple[str, ...] = ()
    font_origins: tuple[str, ...] = ()
    img_sources: tuple[str, ...] = ()
    connect_origins: tuple[str, ...] = field(default_factory=tuple)
    csp_override: str | None = None
    hsts: bool = False

    def content_security_policy(self) -> str:
        if self.csp_override:
            return self.csp_override

        directives = [
            ("default-src", ("'self'",)),
            ("script-src", ("'self'", "'unsafe-inline'", "'unsafe-eval'", *self.script_origins)),
            ("style-src", ("'self'", "'unsafe-inline'", *self.style_origins)),
            ("font-src", ("'self'", *self.font_origins)),
            ("img-src", ("'self'", *self.img_sources)),
            ("connect-src", ("'self'", *self.connect_origins)),
            ("frame-ancestors", ("'none'",)),
        ]
        return "; ".join(f"{name} {' '.join(values)}" for name, values in directives)

    def compute_headers(self) -> dict[str, str]:
        """Return the header mapping. Pure and deterministic."""
        headers = {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "X-XSS-Protection": "1; mode=block",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Content-Security-Policy": self.content_security_policy(),
        }
        if self.hsts:
            headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return headers


def _realtime_origins(url: str | None) -> tuple[str, ...]:
    """Return the https and websocket origins for a backing service URL."""
    if not url:
        return ()
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return ()
    origin = f"{parts.scheme}://{parts.netloc}"
    ws_scheme = "wss" if parts.scheme == "https" else "ws"
    return (origin, f"{ws_scheme}://{parts.netloc}")


def build_header_policy(config: Settings | None = None) -> SecurityHeaderPolicy:
    """Build the header policy from application settings."""
    config = config or settings
    return SecurityHeaderPolicy(
        script_origins=tuple(config.csp_script_origins),
        style_origins=tuple(config.csp_style_origins),
        font_origins=tuple(config.csp_font_origins),
        img_sources=tuple(config.csp_img_sources),
        connect_origins=_realtime_origins(config.supabase_url),
        csp_override=config.content_security_policy,
        hsts=config.is_production,
    )


def compute_headers(config: Settings | None = None) -> dict[str, str]:
    """Return the security header set for the current configuration."""
    return build_header_policy(config).compute_headers()
