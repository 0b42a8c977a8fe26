"""PII (Personally Identifiable Information) detection and redaction.

Withdrawal requests and provider error messages carry bank account
numbers, emails and phone numbers. Anything that goes to the logs is
passed through ``redact_pii`` first.

Usage:
    from talentpay.pii import detect_pii, redact_pii, PIIType

    safe_text = redact_pii("Account 1234567890123 rejected")
    # Returns: "Account [REDACTED-ACCOUNT] rejected"
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class PIIType(Enum):
    """Types of PII that can be detected."""

    EMAIL = "email"
    CREDIT_CARD = "credit_card"
    PHONE = "phone"
    BANK_ACCOUNT = "bank_account"
    MYKAD = "mykad"


@dataclass
class PIIFinding:
    """A detected PII occurrence."""

    pii_type: PIIType
    value: str
    start: int
    end: int
    redacted: str


# Email: standard format, requires @ and domain
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

# Credit card: 13-19 digits, optionally separated by spaces or dashes (Luhn-checked)
CREDIT_CARD_PATTERN = re.compile(r"\b(?:\d{4}[-\s]?){3,4}\d{1,4}\b")

# Malaysian identity card number: YYMMDD-PB-###G
MYKAD_PATTERN = re.compile(r"\b\d{6}-\d{2}-\d{4}\b")

# Malaysian phone: +60 / 60 / 0 prefix, 9-10 subscriber digits
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?60|0)1\d[-\s]?\d{3,4}[-\s]?\d{4}(?!\d)")

# Bank account: a bare run of 8-17 digits
BANK_ACCOUNT_PATTERN = re.compile(r"(?<![\d-])\d{8,17}(?![\d-])")


def _luhn_check(card_number: str) -> bool:
    """Validate credit card number using Luhn algorithm."""
    digits = [int(d) for d in card_number if d.isdigit()]
    if len(digits) < 13 or len(digits) > 19:
        return False

    checksum = 0
    for i, digit in enumerate(reversed(digits)):
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        checksum += digit

    return checksum % 10 == 0


def _overlaps(findings: List[PIIFinding], start: int, end: int) -> bool:
    return any(f.start < end and start < f.end for f in findings)


def detect_pii(
    text: str,
    types: Optional[List[PIIType]] = None,
) -> List[PIIFinding]:
    """Detect PII in text.

    More specific patterns win: a digit run already matched as a card,
    MyKad or phone number is not reported again as a bank account.

    Args:
        text: Text to scan for PII
        types: Specific PII types to detect (default: all)

    Returns:
        List of PIIFinding objects sorted by position
    """
    if types is None:
        types = list(PIIType)

    findings: List[PIIFinding] = []

    if PIIType.EMAIL in types:
        for match in EMAIL_PATTERN.finditer(text):
            findings.append(
                PIIFinding(PIIType.EMAIL, match.group(), match.start(), match.end(), "[REDACTED-EMAIL]")
            )

    if PIIType.CREDIT_CARD in types:
        for match in CREDIT_CARD_PATTERN.finditer(text):
            if _luhn_check(match.group()):
                findings.append(
                    PIIFinding(
                        PIIType.CREDIT_CARD, match.group(), match.start(), match.end(), "[REDACTED-CC]"
                    )
                )

    if PIIType.MYKAD in types:
        for match in MYKAD_PATTERN.finditer(text):
            if not _overlaps(findings, match.start(), match.end()):
                findings.append(
                    PIIFinding(PIIType.MYKAD, match.group(), match.start(), match.end(), "[REDACTED-IC]")
                )

    if PIIType.PHONE in types:
        for match in PHONE_PATTERN.finditer(text):
            if not _overlaps(findings, match.start(), match.end()):
                findings.append(
                    PIIFinding(PIIType.PHONE, match.group(), match.start(), match.end(), "[REDACTED-PHONE]")
                )

    if PIIType.BANK_ACCOUNT in types:
        for match in BANK_ACCOUNT_PATTERN.finditer(text):
            if not _overlaps(findings, match.start(), match.end()):
                findings.append(
                    PIIFinding(
                        PIIType.BANK_ACCOUNT,
                        match.group(),
                        match.start(),
                        match.end(),
                        "[REDACTED-ACCOUNT]",
                    )
                )

    findings.sort(key=lambda f: f.start)
    return findings


def redact_pii(
    text: str,
    types: Optional[List[PIIType]] = None,
) -> str:
    """Redact PII from text.

    Args:
        text: Text to redact PII from
        types: Specific PII types to redact (default: all)

    Returns:
        Text with PII replaced by redaction markers
    """
    findings = detect_pii(text, types)

    if not findings:
        return text

    # Replace from the end so earlier indices stay valid
    result = text
    for finding in reversed(findings):
        result = result[: finding.start] + finding.redacted + result[finding.end :]

    return result


def contains_pii(
    text: str,
    types: Optional[List[PIIType]] = None,
) -> bool:
    """Check if text contains any PII."""
    return len(detect_pii(text, types)) > 0
