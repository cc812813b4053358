"""
Think Nest Backend — Abstract Mail Service Interface
=====================================================

What:  Contract for sending the transactional emails the auth flows need.
Why:   AuthService should not care whether a code goes out over SMTP or is
       printed to the log in development.
How:   Concrete transports implement send_message(); the two code emails are
       rendered here once for every transport.
"""

import html
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


RESET_SUBJECT = "Password Reset Request - Think Nest"
PASSWORD_CHANGE_SUBJECT = "Confirm Your Password Change - Think Nest"

_TEXT_TEMPLATE = """Hello {name},

{intro}

Your {label}: {code}

This code will expire in {minutes} minutes.

{outro}

Best regards,
Think Nest Team"""

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <p>Hello <strong>{name}</strong>,</p>
    <p>{intro}</p>
    <p style="font-size: 14px; text-transform: uppercase;">{label}</p>
    <p style="font-size: 40px; font-weight: 700; letter-spacing: 8px;
              font-family: 'Courier New', monospace;">{code}</p>
    <p>This code will expire in <strong>{minutes} minutes</strong>.</p>
    <p>{outro}</p>
    <p>Best regards,<br><strong>Think Nest Team</strong></p>
  </body>
</html>"""


def render_code_email(
    to: str,
    name: str,
    code: str,
    minutes: int,
    subject: str,
    intro: str,
    label: str,
    outro: str,
) -> OutgoingEmail:
    values = {
        "name": name or "User",
        "intro": intro,
        "label": label,
        "code": code,
        "minutes": minutes,
        "outro": outro,
    }
    # name is whatever the user typed at signup
    html_values = {
        key: html.escape(value) if isinstance(value, str) else value
        for key, value in values.items()
    }
    return OutgoingEmail(
        to=to,
        subject=subject,
        text=_TEXT_TEMPLATE.format(**values),
        html=_HTML_TEMPLATE.format(**html_values),
    )


class MailService(ABC):
    """
    Abstract transport for outgoing email.

    Contract:
        - send_message() either delivers the message or raises
          EmailDeliveryError / CircuitBreakerOpenError
        - health_check() never raises
        - circuit_open() reports a tripped breaker; transports without one
          keep the default
    """

    def __init__(self, code_expiry_minutes: int):
        self.code_expiry_minutes = code_expiry_minutes

    @abstractmethod
    async def send_message(self, message: OutgoingEmail) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    def circuit_open(self) -> bool:
        """True while the transport is refusing sends without trying."""
        return False

    async def send_reset_code(self, email: str, name: str, code: str) -> None:
        await self.send_message(
            render_code_email(
                to=email,
                name=name,
                code=code,
                minutes=self.code_expiry_minutes,
                subject=RESET_SUBJECT,
                intro=(
                    "We received a request to reset your password. "
                    "Use the following code to proceed:"
                ),
                label="Your Reset Token",
                outro=(
                    "If you didn't request a password reset, please ignore this "
                    "email and your password will remain unchanged."
                ),
            )
        )

    async def send_password_change_code(self, email: str, name: str, code: str) -> None:
        await self.send_message(
            render_code_email(
                to=email,
                name=name,
                code=code,
                minutes=self.code_expiry_minutes,
                subject=PASSWORD_CHANGE_SUBJECT,
                intro=(
                    "You asked to change the password on your account. "
                    "Enter this verification code to confirm:"
                ),
                label="Your Verification Code",
                outro=(
                    "If you didn't request this change, sign in and change your "
                    "password immediately."
                ),
            )
        )
