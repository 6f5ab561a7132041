# mailer.py
import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional, Protocol, Union

import structlog
from jinja2 import Environment

from errors import ProviderError
from models import UploadedFile, UploadRequest

log = structlog.get_logger(__name__)

CONFIRMATION_SUBJECT = "Confirmation de réception de vos fichiers"

_text_env = Environment(autoescape=False, trim_blocks=True, keep_trailing_newline=True)
_html_env = Environment(autoescape=True, trim_blocks=True)

CONFIRMATION_TEXT = _text_env.from_string(
    """Bonjour {{ request.full_name }},

Nous avons bien reçu vos fichiers :

{% for f in files %}
- {{ f.name }}: {{ f.web_view_link }}
{% endfor %}

Cordialement,
L'équipe
"""
)

CONFIRMATION_HTML = _html_env.from_string(
    """<h2>Bonjour {{ request.full_name }},</h2>
<p>Nous avons bien reçu vos fichiers :</p>
<ul>
{% for f in files %}
  <li><a href="{{ f.web_view_link }}">{{ f.name }}</a></li>
{% endfor %}
</ul>
<p>Cordialement,<br>L'équipe</p>
"""
)

ADMIN_TEXT = _text_env.from_string(
    """{{ request.full_name }} ({{ request.email }}) a uploadé {{ files|length }} fichier(s).
{% if request.issue %}
Catégorie: {{ request.issue }}
{% endif %}

Message: {{ request.message or 'Aucun' }}

{% for f in files %}
- {{ f.name }}: {{ f.web_view_link }}
{% endfor %}
"""
)

ADMIN_HTML = _html_env.from_string(
    """<p><strong>{{ request.full_name }}</strong> ({{ request.email }})
a uploadé {{ files|length }} fichier(s).</p>
{% if request.issue %}
<p>Catégorie : {{ request.issue }}</p>
{% endif %}
<p>Message : {{ request.message or 'Aucun' }}</p>
<ul>
{% for f in files %}
  <li><a href="{{ f.web_view_link }}">{{ f.name }}</a></li>
{% endfor %}
</ul>
"""
)


class MailTransport(Protocol):
    def send_message(
        self,
        sender: str,
        to: Union[str, Iterable[str]],
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> None:
        ...


class SmtpTransport:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls

    @staticmethod
    def build_message(sender, to, subject, text, html=None) -> EmailMessage:
        recipients = [to] if isinstance(to, str) else list(to)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def send_message(self, sender, to, subject, text, html=None) -> None:
        msg = self.build_message(sender, to, subject, text, html)
        try:
            with smtplib.SMTP(self._host, self._port) as s:
                if self._use_tls:
                    s.starttls()
                if self._username and self._password:
                    s.login(self._username, self._password)
                s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ProviderError(f"Email delivery failed: {e}") from e


class Notifier:
    """
    提出者への受領確認メールと、管理者への通知メールを送る。
    """

    def __init__(self, transport: MailTransport, sender: str, admin_recipients: Iterable[str] = ()):
        self._transport = transport
        self._sender = sender
        self._admin_recipients = tuple(admin_recipients)

    def send_confirmation(self, request: UploadRequest, files: list[UploadedFile]) -> None:
        self._transport.send_message(
            self._sender,
            request.email,
            CONFIRMATION_SUBJECT,
            CONFIRMATION_TEXT.render(request=request, files=files),
            CONFIRMATION_HTML.render(request=request, files=files),
        )
        log.info("confirmation_sent", to=request.email, files=len(files))

    def send_admin_summary(self, request: UploadRequest, files: list[UploadedFile]) -> bool:
        if not self._admin_recipients:
            return False
        self._transport.send_message(
            self._sender,
            list(self._admin_recipients),
            f"Nouveaux fichiers de {request.full_name}",
            ADMIN_TEXT.render(request=request, files=files),
            ADMIN_HTML.render(request=request, files=files),
        )
        log.info("admin_summary_sent", to=list(self._admin_recipients), files=len(files))
        return True
