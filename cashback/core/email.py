"""Transactional email via Resend.

OTP and password-reset mails are critical: callers send them inline and
a delivery failure aborts the request. Welcome, referral-bonus and
withdrawal-status mails go through the notification dispatcher instead.
"""

import logging
from functools import lru_cache

import resend

from cashback.core.constants import JinjaCompiledEmailTemplatesEnv
from cashback.core.exceptions import EmailDeliveryError
from cashback.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _render_template(template_name: str, **context: str) -> str:
    """Render a pre-compiled email template.

    Templates are pre-compiled with CSS inlined and HTML minified.
    Run `make compile-emails` after modifying source templates.

    Args:
        template_name: Name of the template file
        **context: Template variables

    Returns:
        Rendered HTML
    """
    template = JinjaCompiledEmailTemplatesEnv.get_template(template_name)
    return template.render(**context)


def init_resend(settings: Settings) -> None:
    """Initialize Resend with API key if available."""
    if not settings.resend_api_key:
        return
    resend.api_key = settings.resend_api_key


class ResendMailer:
    """Thin mailer over the Resend SDK.

    send() returns the provider message id, or None when delivery is
    disabled because no API key is configured.
    """

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        client_url: str,
        brand: str = "Cashback",
    ):
        self._api_key = api_key
        self._from_email = from_email
        self._client_url = client_url.rstrip("/")
        self._brand = brand

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def send(self, to: str, subject: str, html: str) -> str | None:
        """Send one email.

        Raises:
            EmailDeliveryError: If Resend rejects the message or is unreachable
        """
        if not self.enabled:
            logger.warning(
                "RESEND_API_KEY not configured, skipping email: %s", subject
            )
            return None

        try:
            response = resend.Emails.send(
                {
                    "from": self._from_email,
                    "to": to,
                    "subject": subject,
                    "html": html,
                }
            )
        except Exception as e:
            raise EmailDeliveryError("Failed to send email") from e

        return response.get("id") if response else None

    def send_otp(
        self, to_email: str, name: str, otp: str, expires_minutes: int
    ) -> str | None:
        html = _render_template(
            "otp-code.html",
            name=name,
            otp=otp,
            expires_minutes=str(expires_minutes),
        )
        return self.send(to_email, f"{self._brand} - Your verification code", html)

    def send_welcome(self, to_email: str, name: str) -> str | None:
        html = _render_template(
            "welcome.html", name=name, dashboard_url=f"{self._client_url}/dashboard"
        )
        return self.send(to_email, f"Welcome to {self._brand}", html)

    def send_password_reset(
        self, to_email: str, name: str, reset_token: str
    ) -> str | None:
        reset_url = f"{self._client_url}/reset-password?token={reset_token}"
        html = _render_template("password-reset.html", name=name, reset_url=reset_url)
        return self.send(to_email, f"{self._brand} - Reset Your Password", html)

    def send_referral_bonus(self, to_email: str, name: str, amount: str) -> str | None:
        html = _render_template(
            "referral-bonus.html",
            name=name,
            amount=amount,
            wallet_url=f"{self._client_url}/wallet",
        )
        return self.send(to_email, f"{self._brand} - Referral bonus credited", html)

    def send_withdrawal_update(
        self,
        to_email: str,
        name: str,
        amount: str,
        status: str,
        notes: str = "",
    ) -> str | None:
        html = _render_template(
            "withdrawal-update.html",
            name=name,
            amount=amount,
            status=status,
            notes=notes,
        )
        return self.send(to_email, f"{self._brand} - Withdrawal {status}", html)


@lru_cache
def get_mailer() -> ResendMailer:
    """Get cached mailer built from settings."""
    settings = get_settings()
    return ResendMailer(
        api_key=settings.resend_api_key,
        from_email=f"noreply@{settings.app_domain}",
        client_url=settings.client_url,
    )
