"""
Shared error logging helpers for the lookup service.

Source adapters never let upstream failures escape; they log them through
these helpers at the adapter boundary and return "no result" instead.
"""
from typing import Any

from pydantic import ValidationError

from rafin.util.log import logger


def handle_external_api_error(
    error: Exception,
    service: str,
    operation: str,
    **context: Any
) -> None:
    """
    Standard logging for upstream catalog failures.

    Args:
        error: The caught exception
        service: Name of the external catalog (e.g., "Kitapyurdu", "Google Books")
        operation: What was being attempted (e.g., "lookup", "title search")
        **context: Additional context to log (e.g., isbn=..., url=...)

    Example:
        try:
            html = await fetch_text(client_session, url)
        except (ClientError, asyncio.TimeoutError) as e:
            handle_external_api_error(e, "Kitapyurdu", "lookup", isbn=isbn)
            return None
    """
    logger.error(
        f"{service} {operation} failed",
        error=str(error),
        error_type=type(error).__name__,
        service=service,
        operation=operation,
        **context
    )


def handle_validation_error(
    error: ValidationError,
    data_source: str,
    **context: Any
) -> None:
    """
    Standard logging for payloads that do not match the expected shape.

    Args:
        error: The caught ValidationError
        data_source: Where the invalid data came from (e.g., "Google Books response")
        **context: Additional context to log
    """
    logger.error(
        f"{data_source} validation failed",
        error=str(error),
        error_type=type(error).__name__,
        data_source=data_source,
        **context
    )

