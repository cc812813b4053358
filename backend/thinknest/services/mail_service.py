"""
Think Nest Backend — Mail Transports
=====================================

What:  SMTP and console implementations of MailService.
How:   SMTP sends run in a worker thread (smtplib is blocking), wrapped in
       tenacity retries and a circuit breaker.
Who:   AuthService, for reset and password-change codes; the health route.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient SMTP failures
    2. Circuit breaker so an unreachable mail server fails requests instantly
    3. Authentication/recipient errors are not retried (they will not heal)
"""

import asyncio
import logging
import smtplib
import time
import uuid
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from thinknest.config import settings
from thinknest.exceptions import CircuitBreakerOpenError, EmailDeliveryError
from thinknest.services.mail_base import MailService, OutgoingEmail

logger = logging.getLogger(__name__)

# Errors worth retrying: the relay was unreachable or dropped the connection
TRANSIENT_SMTP_ERRORS = (
    ConnectionError,
    TimeoutError,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
)

# The relay answered but refused this one message; says nothing about its health
MESSAGE_REJECTED_ERRORS = (
    smtplib.SMTPRecipientsRefused,
    smtplib.SMTPSenderRefused,
    smtplib.SMTPDataError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding the mail server.

    State Machine:
        CLOSED → failures reach threshold → OPEN
        OPEN → recovery_timeout elapsed → HALF_OPEN (one test call)
        HALF_OPEN → success → CLOSED; failure → OPEN

    Not thread-safe; all callers share one event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Mail circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Mail circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Mail circuit breaker returning to OPEN (test send failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Mail circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# SMTP transport
# ══════════════════════════════════════════════════════════════════════════

class SMTPMailService(MailService):
    """
    Sends mail through an SMTP relay (Gmail app password, SES, Mailgun...).

    Error Handling Chain:
        send fails → tenacity retries (3 attempts with backoff)
        → all retries fail → circuit breaker failure recorded → EmailDeliveryError
        → threshold reached → further sends rejected instantly
        Refused recipients or data are the message's fault: no retry, and
        the breaker treats the relay as healthy.
    """

    def __init__(self):
        super().__init__(code_expiry_minutes=settings.reset_token_expire_minutes)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "SMTPMailService initialized for %s:%d (tls=%s)",
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_use_tls,
        )

    def build_message(self, message: OutgoingEmail) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = settings.mail_from
        email["To"] = message.to
        email["Message-ID"] = make_msgid(domain="thinknest")
        email.set_content(message.text)
        if message.html:
            email.add_alternative(message.html, subtype="html")
        return email

    async def send_message(self, message: OutgoingEmail) -> None:
        send_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        try:
            await self._send_with_retry(self.build_message(message), send_id)
            self.circuit_breaker.record_success()
        except TRANSIENT_SMTP_ERRORS as e:
            # reraise=True hands back the last transient error once attempts run out
            self.circuit_breaker.record_failure()
            logger.error("[%s] SMTP send failed after retries: %s", send_id, str(e))
            raise EmailDeliveryError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"send_id": send_id, "error_type": type(e).__name__},
            )
        except MESSAGE_REJECTED_ERRORS as e:
            self.circuit_breaker.record_success()
            logger.error("[%s] SMTP relay refused the message: %s", send_id, str(e))
            raise EmailDeliveryError(
                context={"send_id": send_id, "error_type": type(e).__name__},
            )
        except (smtplib.SMTPException, OSError) as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] SMTP send failed: %s", send_id, str(e))
            raise EmailDeliveryError(
                context={"send_id": send_id, "error_type": type(e).__name__},
            )

    @retry(
        retry=retry_if_exception_type(TRANSIENT_SMTP_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, email: EmailMessage, send_id: str) -> None:
        start_time = time.time()
        await asyncio.to_thread(self._deliver, email)
        logger.info(
            "[%s] Email '%s' delivered in %.0fms",
            send_id,
            email["Subject"],
            (time.time() - start_time) * 1000,
        )

    def _deliver(self, email: EmailMessage) -> None:
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout
        ) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(email)

    def circuit_open(self) -> bool:
        return self.circuit_breaker.state == CircuitBreaker.OPEN

    async def health_check(self) -> bool:
        """Opens a connection and issues NOOP; does not send anything."""
        try:
            def _noop() -> bool:
                with smtplib.SMTP(
                    settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout
                ) as smtp:
                    code, _ = smtp.noop()
                    return code == 250

            return await asyncio.to_thread(_noop)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP health check failed: %s", str(e))
            return False


# ══════════════════════════════════════════════════════════════════════════
# Console transport
# ══════════════════════════════════════════════════════════════════════════

class ConsoleMailService(MailService):
    """
    Development transport: writes the message to the log instead of sending it.

    The code is logged in clear; never select this backend in production.
    """

    def __init__(self):
        super().__init__(code_expiry_minutes=settings.reset_token_expire_minutes)

    async def send_message(self, message: OutgoingEmail) -> None:
        logger.warning(
            "Console mail backend: to=%s subject=%r\n%s",
            message.to,
            message.subject,
            message.text,
        )

    async def health_check(self) -> bool:
        return True


def create_mail_service() -> MailService:
    if settings.mail_backend == "smtp":
        return SMTPMailService()
    return ConsoleMailService()


# Singleton: the circuit breaker state must be shared by every request
mail_service = create_mail_service()
