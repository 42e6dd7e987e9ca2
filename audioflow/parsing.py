"""Shared parsing helpers for descriptor and settings value normalization."""

from __future__ import annotations


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def normalize_choice_token(value: object) -> str | None:
    """Normalize an enum-like token (`Side-By-Side` -> `side_by_side`)."""

    text = normalize_optional_string(value)
    if text is None:
        return None
    return text.lower().replace("-", "_").replace(" ", "_")


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def parse_required_boolean(value: object, field_name: str) -> bool:
    """Parse a required boolean value from accepted textual tokens.

    Raises:
        ValueError: If the token is not one of the accepted boolean values.
    """

    parsed = parse_permissive_boolean(value)
    if parsed is not None:
        return parsed

    raise ValueError(
        f"`{field_name}` must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)."
    )


def parse_non_negative_int(value: object, field_name: str) -> int:
    """Parse an integer that may be zero (meaning "unset") but never negative.

    Raises:
        ValueError: If the value is not an integer token or is negative.
    """

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative integer.")
    if isinstance(value, int):
        parsed = value
    else:
        text = normalize_optional_string(value)
        if text is None:
            return 0
        try:
            parsed = int(text)
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a non-negative integer.") from exc
    if parsed < 0:
        raise ValueError(f"`{field_name}` must be a non-negative integer.")
    return parsed


def parse_positive_int(value: object, field_name: str) -> int:
    """Parse a strictly positive integer token."""

    try:
        parsed = parse_non_negative_int(value, field_name)
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a positive integer.") from exc
    if parsed <= 0:
        raise ValueError(f"`{field_name}` must be a positive integer.")
    return parsed
