"""
Input sanitizing and privacy scrubbing for free-text survey fields.
"""

import re

from health_survey.domain.models import SurveyResponse

REDACTED_COMMENT = "[Comments removed for privacy]"

PII_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),  # SSN
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),  # email
    re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),  # phone
    re.compile(
        r"\b\d{1,5}\s\w+\s(street|st|avenue|ave|road|rd|drive|dr|lane|ln|way|court|ct)\b",
        re.IGNORECASE,
    ),
)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize_text(value: str | None) -> str:
    """Strip script blocks, markup and inline handlers from user-entered text."""
    if not value:
        return ""
    value = _SCRIPT_BLOCK.sub("", value)
    value = _HTML_TAG.sub("", value)
    value = _JS_SCHEME.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    return value.strip()


def contains_pii(text: str) -> bool:
    return any(pattern.search(text) for pattern in PII_PATTERNS)


def anonymize_response(response: SurveyResponse) -> SurveyResponse:
    """
    Return a copy safe to persist.

    The location is generalized to its first comma-separated segment and a
    comment that looks like it carries personal data is replaced wholesale.
    """
    demographics = response.demographics.model_copy(
        update={"location": response.demographics.location_key}
    )
    comments = response.additional_comments
    if comments and contains_pii(comments):
        comments = REDACTED_COMMENT

    return response.model_copy(
        update={"demographics": demographics, "additional_comments": comments}
    )
