"""
Form validation rules

Checks that run before anything is sent to the identity backend or the
profile store, plus classification of backend error messages into form fields.
"""

import re
from typing import List, Optional, Tuple

PASSWORD_MIN_LENGTH = 8
PASSWORD_SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
PASSWORD_RULES_MESSAGE = (
    f"Password must be at least {PASSWORD_MIN_LENGTH} characters and contain "
    "an uppercase letter, a lowercase letter, a number and a symbol"
)

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
# Accepts +1-234-567-8900, (123) 456-7890, 123.456.7890 and similar
PHONE_PATTERN = re.compile(
    r'[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,5}[-\s.]?[0-9]{1,6}'
)

DUPLICATE_ACCOUNT_KEYWORDS = ("already", "exists", "registered")
PASSWORD_STRENGTH_KEYWORDS = ("at least", "should contain", "weak", "characters", "strength")


def password_violations(password: str) -> List[str]:
    """
    List every password rule the given password breaks

    Args:
        password: Candidate password

    Returns:
        list: Human readable rule violations, empty when the password is strong
    """
    violations = []
    if len(password) < PASSWORD_MIN_LENGTH:
        violations.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    if not any(c.isupper() for c in password):
        violations.append("an uppercase letter")
    if not any(c.islower() for c in password):
        violations.append("a lowercase letter")
    if not any(c.isdigit() for c in password):
        violations.append("a number")
    if not any(c in PASSWORD_SYMBOLS for c in password):
        violations.append("a symbol")
    return violations


def validate_password(password: Optional[str]) -> Optional[str]:
    """Validate sign-up password strength, returning an error message or None"""
    if not password:
        return "Password is required"
    violations = password_violations(password)
    if violations:
        return "Password must contain " + ", ".join(violations)
    return None


def normalize_phone_digits(phone: str) -> str:
    """Strip everything but digits from a phone number"""
    return re.sub(r'\D', '', phone)


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate an optional phone number

    Empty input is allowed. Otherwise the number must hold 10-15 digits and
    match a permissive international pattern.
    """
    if phone is None or not phone.strip():
        return None

    digits = normalize_phone_digits(phone)
    if len(digits) < PHONE_MIN_DIGITS or len(digits) > PHONE_MAX_DIGITS:
        return "Please enter a valid phone number"

    if not PHONE_PATTERN.fullmatch(phone.strip()):
        return "Please enter a valid phone number"

    return None


def is_duplicate_account_message(message: Optional[str]) -> bool:
    """Check whether a backend sign-up error means the account already exists"""
    if not message:
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in DUPLICATE_ACCOUNT_KEYWORDS)


def classify_gateway_error(message: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Attach a backend error message to the form field it concerns

    Args:
        message: Raw error message from the identity backend

    Returns:
        tuple: (field, message) where field is 'email', 'password' or None for
        the generic error banner
    """
    if not message:
        return None, "Something went wrong. Please try again."

    lowered = message.lower()
    if "email" in lowered:
        return "email", message
    if "password" in lowered:
        if any(keyword in lowered for keyword in PASSWORD_STRENGTH_KEYWORDS):
            return "password", PASSWORD_RULES_MESSAGE
        return "password", message
    return None, message
