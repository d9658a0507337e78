"""Chat webhook notification helper (Discord/Slack compatible payload)."""
from __future__ import annotations

from typing import Optional, Tuple

import requests


def send_webhook_message(
    url: Optional[str], content: str, timeout: float = 10
) -> Tuple[bool, str | None]:
    """Post ``content`` to the webhook at ``url``.

    Returns a tuple ``(ok, error_message)``.  When no URL is configured the
    function returns ``(False, "Webhook não configurado")``.
    """

    if not url:
        return False, "Webhook não configurado"

    try:
        response = requests.post(url, json={"content": content}, timeout=timeout)
        if response.status_code >= 400:
            return False, f"HTTP {response.status_code}: {response.text[:200]}"
        return True, None
    except requests.RequestException as exc:
        return False, str(exc)
