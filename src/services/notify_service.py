import asyncio
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Optional

from src.core.config import Settings, settings as default_settings
from src.core.logging import logger
from src.core.models import Ticket


class NotifyService:
    """
    Best-effort email notification for created incidents.

    `notify` never raises: a failed email must not undo or mask an incident
    that already exists in ServiceNow.
    """

    SMTP_TIMEOUT = 15.0

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def incident_link(self, ticket: Ticket) -> str:
        return f"{self.config.SERVICENOW_URL}/{self.config.SERVICENOW_INCIDENT_UI_PATH}{ticket.sys_id}"

    def build_message(self, ticket: Ticket, project_key: str, project_name: Optional[str]) -> EmailMessage:
        project = project_name or project_key
        msg = EmailMessage()
        msg["From"] = self.config.EMAIL_FROM
        msg["To"] = self.config.EMAIL_TO
        msg["Subject"] = f"Incident: {ticket.number or ticket.sys_id} • Project: {project}"
        msg.set_content(
            f"Incident created for {project}\n"
            f"Number: {ticket.number}\n"
            f"Link: {self.incident_link(ticket)}\n"
            f"Timestamp: {datetime.now(timezone.utc).isoformat()}"
        )
        return msg

    def _send(self, msg: EmailMessage) -> None:
        cfg = self.config
        port = cfg.SMTP_PORT or (465 if cfg.SMTP_SECURE else 587)
        smtp_cls = smtplib.SMTP_SSL if cfg.SMTP_SECURE else smtplib.SMTP
        with smtp_cls(host=cfg.SMTP_HOST, port=port, timeout=self.SMTP_TIMEOUT) as smtp:
            if not cfg.SMTP_SECURE:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if cfg.SMTP_USER and cfg.SMTP_PASS:
                smtp.login(cfg.SMTP_USER, cfg.SMTP_PASS)
            smtp.send_message(msg)

    async def notify(self, ticket: Ticket, project_key: str, project_name: Optional[str] = None) -> None:
        if not self.config.smtp_configured:
            logger.warning("[email] SMTP not configured; skipping")
            return

        try:
            msg = self.build_message(ticket, project_key, project_name)
            await asyncio.to_thread(self._send, msg)
            logger.info(f"[email] Sent notification for {ticket.number}")
        except Exception as e:
            logger.error(f"[email] Failed to send notification: {e}")
