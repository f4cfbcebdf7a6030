"""Tests for request screening and form sanitization."""

from __future__ import annotations

import pytest

from chiroport.services.screening import is_suspicious_user_agent, sanitize_form_data, screen_request


@pytest.mark.parametrize(
    "user_agent",
    ["sqlmap/1.7.2", "Mozilla/5.0 Nikto", "masscan/1.3", "python-requests/2.31", "Wget/1.21", None, ""],
)
def test_suspicious_user_agents(user_agent: str | None) -> None:
    assert is_suspicious_user_agent(user_agent)


def test_browser_user_agent_passes() -> None:
    ua = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"
    assert not is_suspicious_user_agent(ua)
    assert screen_request({"user-agent": ua}).allowed


def test_missing_user_agent_message() -> None:
    result = screen_request({})
    assert not result.allowed
    assert "standard web browser" in result.customer_message


def test_sanitize_recurses_through_structures() -> None:
    data = {
        "name": ' <script>alert("x")</script> ',
        "discomfort": ["<Headache>", "Sciatica"],
        "selectedTreatment": {"title": "Body on the Go"},
        "consent": True,
        "spinalAdjustment": None,
    }

    assert sanitize_form_data(data) == {
        "name": "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;",
        "discomfort": ["&lt;Headache&gt;", "Sciatica"],
        "selectedTreatment": {"title": "Body on the Go"},
        "consent": True,
        "spinalAdjustment": None,
    }
