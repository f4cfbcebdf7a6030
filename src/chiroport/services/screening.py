"""Request screening and form sanitization for public submissions."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

SUSPICIOUS_USER_AGENTS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"sqlmap|nikto|netsparker|acunetix", re.IGNORECASE),
    re.compile(r"havij|pangolin|nessus|openvas", re.IGNORECASE),
    re.compile(r"masscan|zmap|nmap", re.IGNORECASE),
    re.compile(r"python-requests|curl/|wget/", re.IGNORECASE),
)


@dataclass(frozen=True)
class ScreeningResult:
    allowed: bool
    reason: str | None = None

    @property
    def customer_message(self) -> str:
        if self.reason and "user agent" in self.reason:
            return "Please make sure you are using a standard web browser to access this form"
        return "Request blocked for security reasons"


def is_suspicious_user_agent(user_agent: str | None) -> bool:
    """Return True for missing user agents and known attack tooling."""
    if not user_agent:
        return True
    return any(pattern.search(user_agent) for pattern in SUSPICIOUS_USER_AGENTS)


def screen_request(headers: Mapping[str, str]) -> ScreeningResult:
    """Screen a submission request by its headers."""
    user_agent = headers.get("user-agent")
    if not user_agent:
        return ScreeningResult(allowed=False, reason="missing user agent")
    if is_suspicious_user_agent(user_agent):
        return ScreeningResult(allowed=False, reason="suspicious user agent")
    return ScreeningResult(allowed=True)


def _escape(value: str) -> str:
    return value.replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;").strip()


def sanitize_form_data(value: Any) -> Any:
    """Recursively escape markup characters in string values and keys."""
    if isinstance(value, str):
        return _escape(value)
    if isinstance(value, list):
        return [sanitize_form_data(item) for item in value]
    if isinstance(value, dict):
        return {_escape(str(key)): sanitize_form_data(item) for key, item in value.items()}
    return value
