from __future__ import annotations

import logging
import mimetypes
import smtplib
from email.message import EmailMessage
from pathlib import Path

from autoapply.config import Settings, get_settings
from autoapply.types import EmailApplicationRequest, EmailResult

logger = logging.getLogger(__name__)


def render_application_body(request: EmailApplicationRequest) -> str:
    lines = [
        "Dear Hiring Manager,",
        "",
        f"I am writing to apply for the {request.job_title} position at {request.company}.",
        "Please find my CV attached for your consideration.",
    ]
    if request.custom_message:
        lines.extend(["", request.custom_message.strip()])
    lines.extend(
        [
            "",
            "Thank you for your time. I look forward to hearing from you.",
            "",
            "Kind regards,",
            request.applicant_name,
        ]
    )
    return "\n".join(lines)


class EmailSender:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def build_message(self, request: EmailApplicationRequest) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"Application for {request.job_title} at {request.company}"
        message["From"] = self.settings.smtp_from_address
        message["To"] = request.to
        message.set_content(render_application_body(request))

        cv_path = Path(request.cv_path)
        content_type, _ = mimetypes.guess_type(request.cv_original_name)
        maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
        message.add_attachment(
            cv_path.read_bytes(),
            maintype=maintype,
            subtype=subtype,
            filename=request.cv_original_name,
        )
        return message

    def send_job_application(self, request: EmailApplicationRequest) -> EmailResult:
        if not self.settings.smtp_host:
            return EmailResult(success=False, error="SMTP host is not configured")

        try:
            message = self.build_message(request)
            with smtplib.SMTP(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.smtp_timeout_sec,
            ) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()
                if self.settings.smtp_username:
                    server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(message)
        except Exception as exc:
            logger.warning("Email to %s for %s failed: %s", request.to, request.company, exc)
            return EmailResult(success=False, error=str(exc))

        logger.info("Application email sent to %s for %s at %s", request.to, request.job_title, request.company)
        return EmailResult(success=True)
