import smtplib
from email.message import EmailMessage
from typing import Sequence

from .config import Settings

EMAIL_OUTBOX: list[dict] = []

GMAIL_SMTP_HOST = "smtp.gmail.com"
GMAIL_SMTP_PORT = 465


def send_email(
    settings: Settings,
    to: Sequence[str],
    subject: str,
    html: str,
    *,
    bcc: Sequence[str] = (),
):
    if settings.testing:
        EMAIL_OUTBOX.append({"to": list(to), "bcc": list(bcc), "subject": subject, "html": html})
        return
    if not settings.gmail_email or not settings.gmail_app_password:
        raise smtplib.SMTPException("Gmail credentials are not configured")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = ", ".join(to)
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html, subtype="html")
    with smtplib.SMTP_SSL(GMAIL_SMTP_HOST, GMAIL_SMTP_PORT) as s:
        s.login(settings.gmail_email, settings.gmail_app_password)
        # Bcc stays off the headers and only goes to the envelope
        s.send_message(msg, to_addrs=list(to) + list(bcc))


def message_email_html(
    user_name: str | None,
    school_id: str | None,
    location: str | None,
    summary: str | None,
    video_link: str | None,
) -> str:
    return f"""
<p>You have received a new message via the support kiosk.</p>
<ul>
    <li><strong>From:</strong> {user_name}</li>
    <li><strong>School ID:</strong> {school_id or 'Not provided'}</li>
    <li><strong>Location:</strong> {location}</li>
</ul>
<hr>
<h3>AI Summary of Message:</h3>
<p><em>{summary}</em></p>
<hr>
<p><a href="{video_link}">Click here to watch the full video message.</a></p>
"""
