"""Input sanitization and format validation."""

import re

import bleach
from email_validator import EmailNotValidError, validate_email

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", flags=re.DOTALL | re.IGNORECASE)
_JS_SCHEME = re.compile(r"javascript:", flags=re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", flags=re.IGNORECASE)

# Characters bleach leaves alone in text but that matter inside attributes
_ATTRIBUTE_ESCAPES = str.maketrans({
    "\"": "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "\\": "&#x5C;",
    "`": "&#96;",
})

MIN_PASSWORD_LENGTH = 8


def sanitize_text(value: str | None) -> str | None:
    """Strip markup and scripts from user text, escaping what remains.

    Tags are removed entirely. ``&``, ``<``, ``>``, quotes, ``/``, ``\\`` and
    backticks left in the text come back as HTML entities. ``None`` passes
    through.
    """
    if value is None:
        return None

    value = value.replace("\x00", "")
    value = _SCRIPT_BLOCK.sub("", value)
    value = _JS_SCHEME.sub("", value)
    value = _EVENT_HANDLER.sub("", value)

    # tags=[] + strip=True drops every tag and escapes the rest
    cleaned = bleach.clean(value, tags=[], attributes={}, strip=True)
    return cleaned.translate(_ATTRIBUTE_ESCAPES).strip()


def is_valid_email(email: str) -> bool:
    """Check email syntax without touching DNS."""
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
