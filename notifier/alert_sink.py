"""Route rate decisions to the operator log and, optionally, a webhook."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from detectors.rate_window import AlertDecision, AlertRecord
from notifier.webhook import send_webhook_message


def format_alert(alert: AlertRecord) -> str:
    return (
        f"{alert.sender} enviou para {alert.count} destinatários "
        f"nos últimos {alert.window_seconds}s (limite {alert.limit})"
    )


class AlertSink:
    def __init__(
        self,
        logger: logging.Logger,
        webhook_url: Optional[str] = None,
        notify_webhook: bool = False,
        formatter: Callable[[AlertRecord], str] = format_alert,
        send: Callable[..., tuple] = send_webhook_message,
    ) -> None:
        self.log = logger
        self.webhook_url = webhook_url
        self.notify_webhook = notify_webhook
        self.formatter = formatter
        self._send = send

    def matched(self, line: str) -> None:
        self.log.debug("Linha: %s", line)

    def emit(self, decision: AlertDecision) -> None:
        alerted = {a.sender for a in decision.alerts}
        for sender, count in decision.sender_counts.items():
            if sender not in alerted:
                self.log.debug("%s: %s destinatários na janela", sender, count)
        for alert in decision.alerts:
            content = self.formatter(alert)
            self.log.warning("[ALERTA] %s", content)
            if self.notify_webhook:
                self._forward(content)

    def _forward(self, content: str) -> None:
        ok, err = self._send(self.webhook_url, content)
        if not ok:
            self.log.warning(f"Falha ao enviar webhook: {err}")
        else:
            self.log.info("Alerta enviado ao webhook.")
