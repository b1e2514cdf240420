"""
Envoi d'emails best-effort (SMTP asynchrone via aiosmtplib).

Un échec d'envoi ne doit jamais interrompre la saga: send() journalise et
retourne False, sans lever.
"""
from email.message import EmailMessage
import logging

import aiosmtplib

from order_service.config import Settings

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f"{self._settings.shop_name} <{self._settings.mail_from}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Votre client mail ne supporte pas le HTML.")
        msg.add_alternative(html, subtype="html")
        return msg

    async def send(self, to: str, subject: str, html: str) -> bool:
        s = self._settings
        if not s.smtp_host:
            logger.warning("notifications.send skipped (SMTP_HOST non configuré) to=%s subject=%s", to, subject)
            return False
        try:
            await aiosmtplib.send(
                self._build_message(to, subject, html),
                hostname=s.smtp_host,
                port=s.smtp_port,
                username=s.smtp_user or None,
                password=s.smtp_password or None,
                use_tls=s.smtp_use_tls,
                timeout=s.service_timeout,
            )
        except Exception:
            logger.exception("notifications.send failed to=%s subject=%s", to, subject)
            return False
        logger.info("notifications.send ok to=%s subject=%s", to, subject)
        return True
