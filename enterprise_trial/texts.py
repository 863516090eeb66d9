"""User-facing strings for the trial flow."""

TEXTS: dict[str, str] = {
    "resend_success": "We sent you a new confirmation email.",
    "resend_warning": "The confirmation email could not be resent. Please try again later.",
    "internal_error": "An internal error has occurred.",
    "invalid_email": "Invalid e-mail address",
}


def t(key: str) -> str:
    """Look up a text by key, falling back to the key itself."""
    return TEXTS.get(key, key)
