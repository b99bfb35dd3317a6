"""
Email service for sending transactional emails.

Supports SMTP and console logging modes.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

logger = logging.getLogger(__name__)


class EmailService:
    """
    Email service with multi-mode support.

    Modes:
        - console: Log emails to console (development)
        - smtp: Send via SMTP
    """

    def __init__(
        self,
        mode: str = "console",
        from_email: str = "noreply@smartfinance.app",
        from_name: str = "SmartFinance",
        app_url: str = "http://localhost:5173",
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize email service.

        Args:
            mode: "console" or "smtp"
            from_email: Sender email address
            from_name: Sender display name
            app_url: Base URL for frontend links in emails
            smtp_host: SMTP server host
            smtp_port: SMTP server port (465 uses implicit TLS, others STARTTLS)
            smtp_user: SMTP username
            smtp_password: SMTP password
            timeout: SMTP timeout in seconds
        """
        self._mode = mode
        self._from_email = from_email
        self._from_name = from_name
        self._app_url = app_url.rstrip("/")
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._timeout = timeout

        if self._mode == "smtp" and not self._smtp_host:
            logger.warning("SMTP host not configured, falling back to console mode")
            self._mode = "console"

        logger.info(f"Email service initialized in {self._mode} mode")

    @property
    def mode(self) -> str:
        return self._mode

    async def send_password_reset_otp(
        self,
        to_email: str,
        otp: str,
        expires_minutes: int = 10,
    ) -> dict:
        """
        Send the one-time code for a password reset.

        Args:
            to_email: Recipient email address
            otp: Plain one-time code
            expires_minutes: Code lifetime shown to the user

        Returns:
            dict with success status and message
        """
        subject = "Password Reset OTP - SmartFinance"

        text = (
            f"Your password reset OTP is: {otp}\n\n"
            f"This OTP will expire in {expires_minutes} minutes.\n\n"
            "If you didn't request this, please ignore this email.\n\n"
            "This is an automated email, please do not reply."
        )

        html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #007dff;">Password Reset Request</h2>
    <p>Your password reset OTP is:</p>
    <div style="background-color: #f5f5f5; padding: 20px; text-align: center; margin: 20px 0;">
        <h1 style="color: #007dff; font-size: 32px; margin: 0; letter-spacing: 5px;">{otp}</h1>
    </div>
    <p><strong>This OTP will expire in {expires_minutes} minutes.</strong></p>
    <p>If you didn't request this password reset, please ignore this email.</p>
</div>
"""

        return await self._send(to_email, subject, html, text)

    async def send_welcome_email(self, to_email: str, username: str) -> dict:
        """
        Send the post-registration welcome email.

        Args:
            to_email: Recipient email address
            username: Name used in the greeting

        Returns:
            dict with success status and message
        """
        subject = "Welcome to SmartFinance"
        login_url = f"{self._app_url}/login"

        text = (
            f"Hi {username},\n\n"
            "Your SmartFinance account is ready. You can sign in at:\n"
            f"{login_url}\n\n"
            "The SmartFinance Team"
        )

        html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #007dff;">Welcome, {username}!</h2>
    <p>Your SmartFinance account is ready.</p>
    <p><a href="{login_url}" style="color: #007dff;">Sign in to get started</a></p>
    <p>The SmartFinance Team</p>
</div>
"""

        return await self._send(to_email, subject, html, text)

    async def _send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
    ) -> dict:
        """Dispatch to the configured transport."""
        if self._mode == "console":
            return self._send_console(to, subject, text)
        elif self._mode == "smtp":
            return await self._send_smtp(to, subject, html, text)
        else:
            return {"success": False, "error": f"Unknown email mode: {self._mode}"}

    def _send_console(self, to: str, subject: str, text: str) -> dict:
        """Log email instead of sending it."""
        logger.info(
            "\n========== EMAIL (console mode) ==========\n"
            f"To: {to}\n"
            f"Subject: {subject}\n"
            f"{text}\n"
            "==========================================="
        )
        return {
            "success": True,
            "mode": "console",
            "message": "Email logged to console",
        }

    async def _send_smtp(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
    ) -> dict:
        """Send email via SMTP."""
        try:
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = f"{self._from_name} <{self._from_email}>"
            message["To"] = to

            message.attach(MIMEText(text, "plain"))
            message.attach(MIMEText(html, "html"))

            # SSL on 465, STARTTLS otherwise
            use_tls = self._smtp_port == 465

            await aiosmtplib.send(
                message,
                hostname=self._smtp_host,
                port=self._smtp_port,
                username=self._smtp_user,
                password=self._smtp_password,
                use_tls=use_tls,
                start_tls=not use_tls,
                timeout=self._timeout,
            )

            logger.info(f"Email sent via SMTP to {to}")
            return {
                "success": True,
                "mode": "smtp",
                "message": "Email sent via SMTP",
            }

        except Exception as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return {
                "success": False,
                "error": str(e),
            }
