import re
from dataclasses import dataclass
from typing import Any, Mapping

from contact_api.core.errors import ContactValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NAME_MIN = 2
SUBJECT_MIN = 2
MESSAGE_MIN = 10


@dataclass(frozen=True)
class Submission:
    name: str
    email: str
    subject: str
    message: str
    source: str = "form"
    honeypot: str = ""

    @property
    def is_spam(self) -> bool:
        # bots fill the hidden "website" field
        return bool(self.honeypot)


def _as_text(value: Any) -> str:
    # same rendering browsers use for String(value) on decoded JSON
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(v) for v in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def sanitize(value: Any) -> str:
    return _as_text(value).strip()


def is_email(value: Any) -> bool:
    return bool(EMAIL_RE.match(sanitize(value)))


def parse_submission(payload: Any) -> Submission:
    """
    Build a Submission from a decoded JSON body.
    Missing fields, nulls and non-object bodies all become empty strings.
    """
    data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}
    return Submission(
        name=sanitize(data.get("name")),
        email=sanitize(data.get("email")),
        subject=sanitize(data.get("subject")),
        message=sanitize(data.get("message")),
        source=sanitize(data.get("source")) or "form",
        honeypot=sanitize(data.get("website")),
    )


def validate_submission(submission: Submission) -> Submission:
    """Raise ContactValidationError for the first rule that fails."""
    if len(submission.name) < NAME_MIN:
        raise ContactValidationError("Name is required and must be at least 2 characters.")
    if not is_email(submission.email):
        raise ContactValidationError("Invalid email address.")
    if len(submission.subject) < SUBJECT_MIN:
        raise ContactValidationError("Subject is required and must be at least 2 characters.")
    if len(submission.message) < MESSAGE_MIN:
        raise ContactValidationError("Message is required and must be at least 10 characters.")
    return submission
