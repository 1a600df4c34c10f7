"""
Declarative input validation for registration and login payloads.

Each field has an ordered list of rules. Every rule of every field is
evaluated, so a caller sees all violations at once rather than the first one.
Messages are surfaced to end users verbatim and must stay stable.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from email_validator import EmailNotValidError, validate_email

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
PASSWORD_COMPLEXITY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}


@dataclass(frozen=True)
class Rule:
    check: Callable[[Any], bool]
    message: str


@dataclass(frozen=True)
class FieldRules:
    rules: Sequence[Rule]
    sanitizer: Optional[Callable[[str], str]] = None


@dataclass
class FieldError:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult:
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def length_between(min_length: int, max_length: Optional[int] = None) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        if not _is_str(value):
            return False
        if len(value) < min_length:
            return False
        return max_length is None or len(value) <= max_length
    return check


def matches(pattern: "re.Pattern[str]") -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return _is_str(value) and pattern.search(value) is not None
    return check


def matches_whole(pattern: "re.Pattern[str]") -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return _is_str(value) and pattern.fullmatch(value) is not None
    return check


def not_empty(value: Any) -> bool:
    return _is_str(value) and value != ""


def no_null_bytes(value: Any) -> bool:
    # bcrypt refuses NUL bytes
    return _is_str(value) and "\x00" not in value


def is_email(value: Any) -> bool:
    if not _is_str(value):
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_email(value: str) -> str:
    """
    Canonicalize an address: lowercase it, and for Gmail drop dots and
    ``+tag`` suffixes from the local part.
    """
    local, _, domain = value.strip().rpartition("@")
    local = local.lower()
    domain = domain.lower()
    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    return f"{local}@{domain}"


def is_canonical_email(value: Any) -> bool:
    """A valid address that is still valid after normalization."""
    return is_email(value) and is_email(normalize_email(value))


EMAIL_MESSAGE = "Please provide a valid email address"

REGISTER_RULES: Dict[str, FieldRules] = {
    "username": FieldRules(rules=(
        Rule(length_between(3, 30), "Username must be between 3 and 30 characters"),
        Rule(matches_whole(USERNAME_PATTERN), "Username may only contain letters, numbers and underscores"),
    )),
    "email": FieldRules(
        rules=(Rule(is_canonical_email, EMAIL_MESSAGE),),
        sanitizer=normalize_email,
    ),
    "password": FieldRules(rules=(
        Rule(length_between(6), "Password must be at least 6 characters long"),
        Rule(
            matches(PASSWORD_COMPLEXITY),
            "Password must contain at least one lowercase letter, one uppercase letter and one number",
        ),
        Rule(no_null_bytes, "Password must not contain null characters"),
    )),
}

LOGIN_RULES: Dict[str, FieldRules] = {
    "email": FieldRules(
        rules=(Rule(is_canonical_email, EMAIL_MESSAGE),),
        sanitizer=normalize_email,
    ),
    "password": FieldRules(rules=(
        Rule(not_empty, "Password is required"),
    )),
}


def validate_payload(payload: Mapping[str, Any], rules: Mapping[str, FieldRules]) -> ValidationResult:
    result = ValidationResult()
    for name, field_rules in rules.items():
        value = payload.get(name)
        failed = [rule.message for rule in field_rules.rules if not rule.check(value)]
        for message in failed:
            result.errors.append(FieldError(field=name, message=message))
        if failed:
            continue
        result.data[name] = field_rules.sanitizer(value) if field_rules.sanitizer else value
    return result


def field_errors(result: ValidationResult) -> List[Dict[str, str]]:
    return [error.to_dict() for error in result.errors]
