"""Tests for EmailService transports."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from smartfinance.services.email.email_service import EmailService


class TestConsoleMode:
    @pytest.mark.asyncio
    async def test_otp_is_logged(self, caplog):
        service = EmailService(mode="console")

        with caplog.at_level(logging.INFO, logger="smartfinance.services.email.email_service"):
            result = await service.send_password_reset_otp("anna@example.com", "482913")

        assert result["success"] is True
        assert result["mode"] == "console"
        assert "482913" in caplog.text
        assert "anna@example.com" in caplog.text

    def test_smtp_without_host_falls_back_to_console(self):
        assert EmailService(mode="smtp").mode == "console"

    @pytest.mark.asyncio
    async def test_unknown_mode(self):
        result = await EmailService(mode="carrier-pigeon").send_welcome_email("anna@example.com", "Anna")

        assert result["success"] is False


class TestSmtpMode:
    @pytest.mark.asyncio
    async def test_starttls_on_submission_port(self):
        service = EmailService(mode="smtp", smtp_host="smtp.example.com", smtp_user="u", smtp_password="p")

        with patch("smartfinance.services.email.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            result = await service.send_welcome_email("anna@example.com", "Anna")

        assert result["success"] is True
        message = send.await_args.args[0]
        assert message["To"] == "anna@example.com"
        assert message["Subject"] == "Welcome to SmartFinance"
        assert send.await_args.kwargs["start_tls"] is True
        assert send.await_args.kwargs["use_tls"] is False

    @pytest.mark.asyncio
    async def test_implicit_tls_on_465(self):
        service = EmailService(mode="smtp", smtp_host="smtp.example.com", smtp_port=465)

        with patch("smartfinance.services.email.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            await service.send_password_reset_otp("anna@example.com", "482913")

        assert send.await_args.kwargs["use_tls"] is True
        assert send.await_args.kwargs["start_tls"] is False

    @pytest.mark.asyncio
    async def test_send_failure_is_reported_not_raised(self):
        service = EmailService(mode="smtp", smtp_host="smtp.example.com")

        with patch(
            "smartfinance.services.email.email_service.aiosmtplib.send",
            new=AsyncMock(side_effect=OSError("connection refused")),
        ):
            result = await service.send_password_reset_otp("anna@example.com", "482913")

        assert result == {"success": False, "error": "connection refused"}
