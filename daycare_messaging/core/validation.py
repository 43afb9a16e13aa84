"""
Input Validation Utilities

Normalization of message destinations before they reach the messaging
provider, plus masking helpers for logs:
- Phone numbers (Brazilian format, E.164 output)
- E-mail addresses
"""
import re

from daycare_messaging.core.config import settings


class ValidationPatterns:
    """Regex patterns for validation"""

    # E.164 after normalization: + followed by 10-15 digits
    PHONE_E164 = re.compile(r"^\+[1-9]\d{9,14}$")

    EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PhoneNumberValidator:
    """Phone number validation and normalization"""

    @staticmethod
    def normalize(phone: str, country_code: str | None = None) -> str:
        """
        Normalize a phone number to the provider's expected format.

        Strips every non-digit and any leading zeros (trunk prefix), prefixes
        the country code when absent, then adds ``+``.

        Args:
            phone: Raw phone number as typed by the parent or operator
            country_code: Country calling code, defaults to settings

        Returns:
            Normalized phone number (e.g. +5511987654321), or "" for no digits
        """
        code = country_code or settings.DEFAULT_COUNTRY_CODE
        digits = re.sub(r"\D", "", phone or "").lstrip("0")
        if not digits:
            return ""
        if not digits.startswith(code):
            digits = code + digits
        return "+" + digits

    @staticmethod
    def validate(phone: str, country_code: str | None = None) -> bool:
        if not phone:
            return False
        normalized = PhoneNumberValidator.normalize(phone, country_code)
        return bool(ValidationPatterns.PHONE_E164.match(normalized))

    @staticmethod
    def mask(phone: str) -> str:
        """
        Mask phone number for logging (privacy).

        Returns:
            Masked phone number (e.g., +55119876****)
        """
        if not phone or len(phone) < 4:
            return "****"
        return phone[:-4] + "****"


class EmailValidator:
    """E-mail address validation and normalization"""

    @staticmethod
    def normalize(email: str) -> str:
        return (email or "").strip().lower()

    @staticmethod
    def validate(email: str) -> bool:
        return bool(email) and bool(ValidationPatterns.EMAIL.match(EmailValidator.normalize(email)))

    @staticmethod
    def mask(email: str) -> str:
        """Keep the first character of the local part and the domain (j***@example.com)"""
        if not email or "@" not in email:
            return "****"
        local, domain = email.split("@", 1)
        return f"{local[:1]}***@{domain}"


def preview(text: str, length: int = 200) -> str:
    """First ``length`` characters of a message, used for list views and logs"""
    return (text or "")[:length]
