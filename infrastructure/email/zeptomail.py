"""ZeptoMail implementation of EmailSender.

Renders a Jinja2 template from templates/emails and posts it to the
ZeptoMail API through HttpClient. Unlike a fire-and-forget notifier this
sender raises on failure: the OTP issuer must know whether delivery happened
before it commits any rate-limit state.
"""

import os
from typing import Any, Mapping, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from config import EmailSettings
from errors import DeliveryError, DeliveryUnavailableError
from infrastructure.http_client import HttpClient
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailSender:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_url: str = "http://localhost:8000",
        template_dir: Optional[str] = None,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_url = app_url
        self._jinja = Environment(
            loader=FileSystemLoader(
                template_dir or settings.email_template_dir or _DEFAULT_TEMPLATE_DIR
            ),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render(self, template_name: str, template_data: Mapping[str, Any]) -> str:
        try:
            template = self._jinja.get_template(f"{template_name}.html")
            return template.render(app_url=self._app_url, **template_data)
        except TemplateError as e:
            log.error(
                "email_template_error",
                template=template_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeliveryError("Failed to send email") from e

    async def send(
        self,
        email: str,
        subject: str,
        template_name: str,
        template_data: Mapping[str, Any],
    ) -> None:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            raise DeliveryError("Failed to send email")

        html_body = self._render(template_name, template_data)

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": email,
                        "name": template_data.get("name") or email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            log.error(
                "email_send_error",
                email=mask_email(email),
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeliveryUnavailableError("Email provider unavailable") from e

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", email=mask_email(email), subject=subject)
            return

        log.error(
            "email_sent_failed",
            email=mask_email(email),
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        if response.status_code >= 500:
            raise DeliveryUnavailableError("Email provider unavailable")
        raise DeliveryError("Failed to send email")
