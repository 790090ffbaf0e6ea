"""Outbound player notifications.

A notifier has a single ``notify(recipient, subject, body)`` operation and
raises :class:`NotificationError` on failure. Callers treat notifications as
best-effort and only log those errors.
"""
import logging

import requests

logger = logging.getLogger(__name__)

MAILGUN_API_BASE = 'https://api.mailgun.net/v3'


class NotificationError(Exception):
    pass


class Notifier:
    def notify(self, recipient: str, subject: str, body: str) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def notify(self, recipient, subject, body):
        return None


class ConsoleNotifier(Notifier):
    """Writes notifications to the log. The local-development default."""

    def notify(self, recipient, subject, body):
        logger.info(f"[notify] to={recipient} subject={subject!r}\n{body}")


class MailgunNotifier(Notifier):
    def __init__(self, api_key: str, domain: str, sender: str, frontend_url: str = '', timeout: float = 10):
        if not api_key or not domain:
            raise ValueError('Mailgun notifier needs MAILGUN_API_KEY and MAILGUN_DOMAIN')
        self.api_key = api_key
        self.domain = domain
        self.sender = sender
        self.frontend_url = frontend_url
        self.timeout = timeout
        self.session = requests.Session()

    def notify(self, recipient, subject, body):
        if self.frontend_url:
            body = f"{body}\n\nvisit: {self.frontend_url} to download latest save"
        try:
            response = self.session.post(
                f"{MAILGUN_API_BASE}/{self.domain}/messages",
                auth=('api', self.api_key),
                data={'from': self.sender, 'to': recipient, 'subject': subject, 'text': body},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NotificationError(f"failed to send email to {recipient}: {exc}") from exc
        logger.info(f"[notify] email sent to {recipient}: {subject}")


def build_notifier(config) -> Notifier:
    kind = (config.get('NOTIFIER') or 'console').lower()
    if kind == 'mailgun':
        return MailgunNotifier(
            api_key=config.get('MAILGUN_API_KEY'),
            domain=config.get('MAILGUN_DOMAIN'),
            sender=config.get('MAIL_SENDER'),
            frontend_url=config.get('FRONTEND_URL', ''),
            timeout=config.get('NOTIFY_TIMEOUT_SEC', 10),
        )
    if kind == 'none':
        return NullNotifier()
    if kind != 'console':
        logger.warning(f"[notify] unknown NOTIFIER {kind!r}, using console")
    return ConsoleNotifier()
