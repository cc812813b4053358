"""
Think Nest Backend — Mail Service Unit Tests (Mocked)
======================================================

What:  Tests for the SMTP / console transports and the circuit breaker.
How:   SMTPMailService._deliver (the blocking smtplib call) is patched, and
       tenacity's backoff is replaced with wait_none() so retries are instant.

What we test:
    ✅ Messages carry plain-text and HTML parts with the code
    ✅ Transient SMTP failures are retried, permanent ones are not
    ✅ Exhausted retries raise EmailDeliveryError and count toward the breaker
    ✅ Circuit breaker opens, rejects, half-opens and closes
    ❌ Real SMTP connections
"""

import logging
import smtplib
import time
from unittest.mock import MagicMock, patch

import pytest
from tenacity import wait_none

from thinknest.config import settings
from thinknest.exceptions import CircuitBreakerOpenError, EmailDeliveryError
from thinknest.services.mail_base import RESET_SUBJECT, OutgoingEmail, render_code_email
from thinknest.services.mail_service import (
    CircuitBreaker,
    ConsoleMailService,
    SMTPMailService,
)


@pytest.fixture
def smtp_service():
    with patch.object(SMTPMailService._send_with_retry.retry, "wait", wait_none()):
        yield SMTPMailService()


def sample_email() -> OutgoingEmail:
    return render_code_email(
        to="ada@example.com",
        name="Ada",
        code="482913",
        minutes=10,
        subject=RESET_SUBJECT,
        intro="Use the following code to proceed:",
        label="Your Reset Token",
        outro="Ignore this email if you did not ask for it.",
    )


class TestCircuitBreaker:
    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.can_execute() is True

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 60

    def test_half_open_then_closed_on_success(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()
        cb.last_failure_time = time.time() - 61

        assert cb.can_execute() is True
        assert cb.state == CircuitBreaker.HALF_OPEN

        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        cb.last_failure_time = time.time() - 61
        cb.can_execute()

        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN


class TestMessageRendering:
    def test_code_email_has_text_and_html(self):
        message = sample_email()
        assert "482913" in message.text
        assert "10 minutes" in message.text
        assert "Hello Ada" in message.text
        assert "482913" in message.html

    def test_build_message_headers_and_parts(self, smtp_service):
        email = smtp_service.build_message(sample_email())
        assert email["To"] == "ada@example.com"
        assert email["From"] == settings.mail_from
        assert email["Subject"] == RESET_SUBJECT
        assert email["Message-ID"]
        content_types = [part.get_content_type() for part in email.iter_parts()]
        assert content_types == ["text/plain", "text/html"]

    def test_name_is_escaped_in_html(self):
        message = render_code_email(
            to="victim@example.com",
            name='<a href="https://evil.example">Click to reset</a>',
            code="482913",
            minutes=10,
            subject=RESET_SUBJECT,
            intro="Use the following code to proceed:",
            label="Your Reset Token",
            outro="Ignore this email if you did not ask for it.",
        )

        assert "<a href=" not in message.html
        assert "&lt;a href=&quot;https://evil.example&quot;&gt;" in message.html
        assert "482913" in message.html
        # The plain-text part is not markup
        assert '<a href="https://evil.example">' in message.text


class TestSMTPMailService:
    @pytest.mark.asyncio
    async def test_send_success(self, smtp_service):
        with patch.object(smtp_service, "_deliver", MagicMock()) as deliver:
            await smtp_service.send_message(sample_email())

        deliver.assert_called_once()
        assert smtp_service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, smtp_service):
        side_effects = [smtplib.SMTPServerDisconnected("dropped"), ConnectionRefusedError(), None]
        with patch.object(smtp_service, "_deliver", MagicMock(side_effect=side_effects)) as deliver:
            await smtp_service.send_message(sample_email())

        assert deliver.call_count == 3
        assert smtp_service.circuit_breaker.state == CircuitBreaker.CLOSED

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_delivery_error(self, smtp_service):
        with patch.object(
            smtp_service, "_deliver", MagicMock(side_effect=TimeoutError("slow relay"))
        ) as deliver:
            with pytest.raises(EmailDeliveryError) as exc_info:
                await smtp_service.send_message(sample_email())

        assert deliver.call_count == settings.retry_max_attempts
        assert exc_info.value.retry_after == settings.cb_recovery_timeout
        assert smtp_service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_authentication_failure_is_not_retried(self, smtp_service):
        error = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with patch.object(smtp_service, "_deliver", MagicMock(side_effect=error)) as deliver:
            with pytest.raises(EmailDeliveryError):
                await smtp_service.send_message(sample_email())

        deliver.assert_called_once()

    @pytest.mark.asyncio
    async def test_refused_recipient_does_not_trip_breaker(self, smtp_service):
        error = smtplib.SMTPRecipientsRefused({"nobody@example.com": (550, b"no such user")})
        for _ in range(smtp_service.circuit_breaker.failure_threshold + 1):
            with patch.object(smtp_service, "_deliver", MagicMock(side_effect=error)) as deliver:
                with pytest.raises(EmailDeliveryError):
                    await smtp_service.send_message(sample_email())
            deliver.assert_called_once()

        assert smtp_service.circuit_breaker.failure_count == 0
        assert smtp_service.circuit_open() is False

    @pytest.mark.asyncio
    async def test_rejected_data_is_not_a_breaker_failure(self, smtp_service):
        error = smtplib.SMTPDataError(554, b"message rejected")
        with patch.object(smtp_service, "_deliver", MagicMock(side_effect=error)):
            with pytest.raises(EmailDeliveryError):
                await smtp_service.send_message(sample_email())

        assert smtp_service.circuit_breaker.state == CircuitBreaker.CLOSED
        assert smtp_service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_open_circuit_skips_smtp(self, smtp_service):
        for _ in range(smtp_service.circuit_breaker.failure_threshold):
            smtp_service.circuit_breaker.record_failure()

        with patch.object(smtp_service, "_deliver", MagicMock()) as deliver:
            with pytest.raises(CircuitBreakerOpenError):
                await smtp_service.send_reset_code("ada@example.com", "Ada", "123456")

        deliver.assert_not_called()
        assert smtp_service.circuit_open() is True

    @pytest.mark.asyncio
    async def test_health_check_returns_false_when_unreachable(self, smtp_service):
        with patch(
            "thinknest.services.mail_service.smtplib.SMTP",
            side_effect=ConnectionRefusedError(),
        ):
            assert await smtp_service.health_check() is False


class TestConsoleMailService:
    @pytest.mark.asyncio
    async def test_reset_code_is_logged(self, caplog):
        service = ConsoleMailService()
        with caplog.at_level(logging.WARNING, logger="thinknest.services.mail_service"):
            await service.send_reset_code("ada@example.com", "Ada", "654321")

        assert "654321" in caplog.text
        assert RESET_SUBJECT in caplog.text

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await ConsoleMailService().health_check() is True

    def test_never_reports_open_circuit(self):
        assert ConsoleMailService().circuit_open() is False
