"""Source identifier validation."""

from __future__ import annotations

import logging
import re

from eventforge.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Lowercase alphanumeric segments separated by single dots: "payment.service"
SOURCE_PATTERN = re.compile(r"^[a-z0-9]+(?:\.[a-z0-9]+)*$")


def is_valid_source(value: str) -> bool:
    return bool(SOURCE_PATTERN.match(value))


def validate_source(value: str, *, owner: str = "handler") -> str:
    """Return *value* unchanged if it is a valid source identifier.

    Raises
    ------
    ConfigurationError
        If *value* is not lowercase alphanumeric segments joined by dots.
    """
    if not isinstance(value, str) or not is_valid_source(value):
        logger.error("Invalid %s source identifier: %r", owner, value)
        raise ConfigurationError(
            f"Invalid {owner} source {value!r}: expected lowercase alphanumeric "
            "segments separated by dots (e.g. 'payment.service')."
        )
    return value


def validate_executionunits(value: float, *, owner: str = "handler") -> float:
    """Return *value* as a float if it is a non-negative number.

    Raises
    ------
    ConfigurationError
        If *value* is negative or not a number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        logger.error("Invalid executionunits for %s: %r", owner, value)
        raise ConfigurationError(
            f"executionunits for {owner} must be a non-negative number, got {value!r}"
        )
    return float(value)
