import re

from rideshare.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@([^@\s]+\.[^@\s]+)$")


def validate_password(password: str) -> None:
    """Validate password meets requirements.

    Requirements:
    - No whitespace characters
    - Minimum length of 6 characters

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters long")

    if any(char.isspace() for char in password):
        raise ValidationError("Password cannot contain whitespace characters")


def normalize_email(email: str, allowed_domain: str) -> str:
    """Lowercase the address and check it belongs to the campus domain.

    Raises:
        ValidationError: If the address is malformed or from another domain
    """
    email = email.strip().lower()
    match = EMAIL_RE.fullmatch(email)
    if match is None:
        raise ValidationError("Invalid email address")
    if allowed_domain and match.group(1) != allowed_domain.lower():
        raise ValidationError(f"Must be a @{allowed_domain} email")
    return email


def validate_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Name is required")
    if len(name) > 100:
        raise ValidationError("Name must be at most 100 characters long")
    return name
