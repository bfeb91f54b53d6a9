import smtplib
from email.message import EmailMessage

from flask import current_app


def send_email(to_email: str, subject: str, body: str, config=None):
    config = config if config is not None else current_app.config
    host = config.get("SMTP_HOST")
    port = config.get("SMTP_PORT", 587)
    username = config.get("SMTP_USERNAME")
    password = config.get("SMTP_PASSWORD")
    from_email = config.get("SMTP_FROM_EMAIL") or username
    use_tls = config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"
    if not to_email:
        return False, "No recipient"

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)
