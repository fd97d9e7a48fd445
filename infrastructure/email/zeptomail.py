"""ZeptoMail implementation of Notifier.

Sends OTP emails through the ZeptoMail HTTP API using the shared async
HttpClient (bounded timeout). Jinja2 renders the HTML body from
templates/emails/. Returns False on any delivery failure; the caller treats
delivery as best-effort.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

# purpose -> (subject, template, action sentence)
_PURPOSE_COPY: dict[str, tuple[str, str, str]] = {
    "signup": (
        "Verify your Fixly account",
        "otp_code.html",
        "verify your email and complete your account setup",
    ),
    "reset": (
        "Reset your Fixly password",
        "otp_code.html",
        "reset your password",
    ),
}


class ZeptoMailNotifier:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_url: str = "https://fixly.app",
        expiry_minutes: Optional[dict[str, int]] = None,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_url = app_url
        self._expiry_minutes = expiry_minutes or {"signup": 10, "reset": 15}
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=to_email, subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=to_email,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_code(
        self, identifier: str, display_name: Optional[str], code: str, purpose: str
    ) -> bool:
        subject, template_name, action = _PURPOSE_COPY.get(
            purpose, _PURPOSE_COPY["signup"]
        )
        minutes = self._expiry_minutes.get(purpose, 10)
        template = self._jinja.get_template(template_name)
        html_body = template.render(
            otp_code=code,
            user_name=display_name,
            subject=subject,
            action=action,
            expiry_minutes=minutes,
            app_url=self._app_url,
        )
        text_body = (
            f"{subject}\n\n"
            f"Hello{f' {display_name}' if display_name else ''},\n\n"
            f"Your verification code is: {code}\n\n"
            f"Enter this 6-digit code to {action}.\n"
            f"This code expires in {minutes} minutes. If you didn't request "
            f"this code, please ignore this email.\n"
        )
        return await self._send(identifier, display_name, subject, html_body, text_body)


class LoggingNotifier:
    """Development notifier: logs instead of sending.

    The code itself is only logged when *echo_codes* is set (development).
    """

    def __init__(self, echo_codes: bool = False) -> None:
        self._echo_codes = echo_codes

    async def send_code(
        self, identifier: str, display_name: Optional[str], code: str, purpose: str
    ) -> bool:
        if self._echo_codes:
            log.info("otp_dev_delivery", identifier=identifier, purpose=purpose, code=code)
        else:
            log.info("otp_delivery_skipped", identifier=identifier, purpose=purpose)
        return True
