"""
Email Service.
Renders ticket lifecycle emails and sends them over SMTP.
"""

import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from jinja2 import DictLoader, Environment, select_autoescape

from supportdesk import config

logger = logging.getLogger(__name__)

_BASE = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; background: #0f172a; color: #e2e8f0; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #1e293b; border-radius: 16px; padding: 32px;">
    <h2 style="text-align: center;">Tashkhees Support</h2>
    <p style="text-align: center; color: #94a3b8;">{{ headline }}</p>
    <p style="text-align: center;"><strong>{{ ticket.ticketId }}</strong></p>
    {% block body %}{% endblock %}
    <p style="text-align: center; color: #64748b; font-size: 14px;">&copy; {{ year }} Tashkhees Support Portal</p>
  </div>
</body>
</html>"""

TEMPLATES = {
    "base": _BASE,
    "ticketCreated": """{% extends "base" %}{% block body %}
    <p><b>Subject:</b> {{ ticket.subject }}</p>
    <p><b>Product:</b> {{ ticket.product }}</p>
    <p><b>Status:</b> {{ ticket.status }}</p>
    <p><b>Description:</b> {{ ticket.description }}</p>
    <p>We'll notify you when there's an update on your ticket.</p>
{% endblock %}""",
    "statusChanged": """{% extends "base" %}{% block body %}
    <p style="text-align: center;"><s>{{ old_status }}</s> &rarr; <b>{{ new_status }}</b></p>
    <p><b>Subject:</b> {{ ticket.subject }}</p>
    {% if changed_by %}<p><b>Updated by:</b> {{ changed_by }}</p>{% endif %}
{% endblock %}""",
    "ticketAssigned": """{% extends "base" %}{% block body %}
    <p><b>Subject:</b> {{ ticket.subject }}</p>
    <p>Assigned to: <b>{{ assigned_to }}</b></p>
{% endblock %}""",
    "replyAdded": """{% extends "base" %}{% block body %}
    <p><b>{{ sender }}</b> replied to "{{ ticket.subject }}":</p>
    <blockquote>{{ message }}</blockquote>
{% endblock %}""",
}

SUBJECTS = {
    "ticketCreated": "Ticket Created: {ticket[ticketId]} - {ticket[subject]}",
    "statusChanged": "Ticket {ticket[ticketId]} - Status Updated to {new_status}",
    "ticketAssigned": "Ticket {ticket[ticketId]} - Assigned to {assigned_to}",
    "replyAdded": "New reply on ticket {ticket[ticketId]}",
}

HEADLINES = {
    "ticketCreated": "Your ticket has been received",
    "statusChanged": "Your ticket status has been updated",
    "ticketAssigned": "Your ticket has been assigned",
    "replyAdded": "There is a new reply on your ticket",
}


class EmailService:
    """Service for sending templated ticket emails."""

    def __init__(
        self,
        host: str = config.EMAIL_HOST,
        port: int = config.EMAIL_PORT,
        username: str = config.EMAIL_USER,
        password: str = config.EMAIL_PASS,
        sender: str = config.EMAIL_FROM,
        use_tls: bool = config.EMAIL_USE_TLS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.env = Environment(
            loader=DictLoader(TEMPLATES),
            autoescape=select_autoescape(default=True),
        )

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    def render(self, template: str, **context) -> tuple[str, str]:
        subject = SUBJECTS[template].format(**context)
        html = self.env.get_template(template).render(
            headline=HEADLINES[template], year=datetime.now().year, **context
        )
        return subject, html

    def _send_sync(self, to_email: str, subject: str, html_content: str):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg.attach(MIMEText(html_content, "html"))

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.username, self.password)
            server.sendmail(self.sender, [to_email], msg.as_string())

    async def send(self, to_email: Optional[str], template: str, **context) -> bool:
        """
        Send a templated email. Never raises.

        Returns:
            bool: True if sent successfully
        """
        if not to_email:
            return False
        if not self.configured:
            logger.info("Email not configured, skipping %s email to %s", template, to_email)
            return False
        try:
            subject, html = self.render(template, **context)
            await asyncio.to_thread(self._send_sync, to_email, subject, html)
            logger.info("Email %s sent to %s", template, to_email)
            return True
        except Exception as e:
            logger.error(f"Failed to send {template} email to {to_email}: {e}")
            return False
