import pytest

from contact_api.core.errors import ContactValidationError
from contact_api.lib.validation import is_email, parse_submission, sanitize, validate_submission


def test_sanitize_normalizes_missing_values():
    assert sanitize(None) == ""
    assert sanitize("  hi  ") == "hi"
    assert sanitize(42) == "42"


def test_sanitize_renders_json_values_like_browsers():
    assert sanitize(["ab"]) == "ab"
    assert sanitize(["a", None, 2]) == "a,,2"
    assert sanitize(True) == "true"
    assert sanitize(False) == "false"
    assert sanitize(3.0) == "3"
    assert sanitize(2.5) == "2.5"
    assert sanitize({"first": "Jane"}) == "[object Object]"


def test_list_valued_name_counts_as_text():
    sub = parse_submission({"name": ["Jane Doe"], "subject": True})
    assert sub.name == "Jane Doe"
    assert sub.subject == "true"


def test_parse_submission_defaults():
    sub = parse_submission({"name": " Jane ", "website": None})
    assert sub.name == "Jane"
    assert sub.email == ""
    assert sub.source == "form"
    assert not sub.is_spam


def test_parse_submission_non_mapping():
    assert parse_submission("nope").name == ""


def test_honeypot_flag():
    assert parse_submission({"website": "x"}).is_spam


@pytest.mark.parametrize("value", ["a@b.co", "jane.doe+tag@mail.example.com"])
def test_is_email_accepts(value):
    assert is_email(value)


@pytest.mark.parametrize("value", ["", None, "a@b", "a@b@c.co", "a @b.co", "ab.co"])
def test_is_email_rejects(value):
    assert not is_email(value)


def test_first_failing_rule_wins():
    sub = parse_submission({"name": "Jo", "email": "jo@example.com", "subject": "", "message": ""})
    with pytest.raises(ContactValidationError) as exc:
        validate_submission(sub)
    assert exc.value.message == "Subject is required and must be at least 2 characters."
