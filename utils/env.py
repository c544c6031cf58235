"""
Environment variable helpers used by config.py.
"""
import os
from typing import Optional


def get_env_str(
    name: str,
    default: Optional[str] = None,
    required: bool = False,
    strip: bool = True
) -> Optional[str]:
    """
    Read a string environment variable.

    Whitespace is stripped by default so that values pasted into a dashboard
    (bucket names, base URLs) don't carry trailing newlines into paths.

    Args:
        name: Environment variable name
        default: Returned when the variable is unset or empty after strip
        required: Raise ValueError instead of returning the default
        strip: Strip leading/trailing whitespace (default: True)

    Returns:
        The value, or default if not set/empty

    Raises:
        ValueError: If required=True and the value is missing or empty
    """
    value = os.getenv(name)

    if value is None:
        if required:
            raise ValueError(
                f"Required environment variable '{name}' is not set. "
                f"Please add it to your .env file or environment."
            )
        return default

    if strip:
        value = value.strip()

    if not value:
        if required:
            raise ValueError(
                f"Required environment variable '{name}' is empty (or whitespace-only). "
                f"Please set a valid value in your .env file or environment."
            )
        return default

    return value


def get_env_bool(name: str, default: bool = False) -> bool:
    """
    Read a boolean environment variable.

    Truthy values: "1", "true", "yes", "on" (case-insensitive).
    Anything else that is non-empty is False.
    """
    value = os.getenv(name, "").strip().lower()

    if not value:
        return default

    return value in ("1", "true", "yes", "on")


def get_env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    """
    Read an integer environment variable.

    Unparseable values raise ValueError naming the variable; a value below
    `minimum` raises as well. Render limits come from here, so a typo must
    fail at boot rather than silently fall back.
    """
    raw = get_env_str(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{name}' must be an integer. Got: {raw!r}")
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable '{name}' must be >= {minimum}. Got: {value}")
    return value
