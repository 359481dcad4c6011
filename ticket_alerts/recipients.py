"""
Recipient address checks for overdue alerts.

The check is syntactic only (``local@domain.tld`` shape) and deliberately
permissive; it is not an RFC 5322 validator.
"""

import re
from typing import Iterable

from .models import EmailValidation


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: str) -> bool:
    """Check whether a string looks like an email address."""
    return bool(EMAIL_PATTERN.match(email))


def validate_emails(emails: Iterable[str]) -> EmailValidation:
    """
    Split candidate addresses into valid and invalid ones.

    Each entry is trimmed before it is checked. Relative order is kept
    within each group.

    Args:
        emails: Candidate recipient strings.

    Returns:
        EmailValidation with the trimmed valid and invalid addresses.
    """
    result = EmailValidation()
    for email in emails:
        trimmed = email.strip()
        if validate_email(trimmed):
            result.valid.append(trimmed)
        else:
            result.invalid.append(trimmed)
    return result
