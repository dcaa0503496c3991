"""
Error handling utilities for SupportChat.

Registers FastAPI exception handlers that render every SupportChatError
in the standard error envelope, and provides consistent error logging.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .exceptions import SupportChatError, RateLimitError
from .response import error_response

logger = logging.getLogger(__name__)


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Args:
        logger: Logger instance to use
        error: The exception to log
        context: Optional context string to prefix the message
        include_traceback: Whether to include the full stack trace

    Example:
        >>> log_error(logger, err, context="process_chat")
        # Logs: "[process_chat] AI_TIMEOUT: Completion timed out"
    """
    if isinstance(error, SupportChatError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = f"{type(error).__name__}: {error}"

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)


async def _support_chat_error_handler(request: Request, exc: SupportChatError) -> JSONResponse:
    if exc.status_code >= 500:
        log_error(logger, exc, context=f"{request.method} {request.url.path}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code.value}")

    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.reset_in)}

    return JSONResponse(status_code=exc.status_code, content=error_response(exc), headers=headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(logger, exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_response(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the SupportChat error handlers to an application."""
    app.add_exception_handler(SupportChatError, _support_chat_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
