from __future__ import annotations

import asyncio

import openai


class LLMError(Exception):
    """Base error for LLM-related failures."""

    retryable = False


class LLMRateLimitError(LLMError):
    retryable = True


class LLMTimeoutError(LLMError):
    retryable = True


class LLMConnectionError(LLMError):
    retryable = True


class LLMServerError(LLMError):
    retryable = True


class LLMAuthError(LLMError):
    pass


class LLMNotFoundError(LLMError):
    pass


class LLMForbiddenError(LLMError):
    pass


class LLMBadRequestError(LLMError):
    pass


def wrap_openai_error(error: Exception) -> LLMError:
    """
    Translate an openai SDK (or asyncio) exception into our LLMError hierarchy.
    Order matters: APITimeoutError subclasses APIConnectionError.
    """
    if isinstance(error, LLMError):
        return error
    if isinstance(error, (openai.APITimeoutError, asyncio.TimeoutError)):
        cls: type[LLMError] = LLMTimeoutError
    elif isinstance(error, openai.APIConnectionError):
        cls = LLMConnectionError
    elif isinstance(error, openai.RateLimitError):
        cls = LLMRateLimitError
    elif isinstance(error, openai.AuthenticationError):
        cls = LLMAuthError
    elif isinstance(error, openai.PermissionDeniedError):
        cls = LLMForbiddenError
    elif isinstance(error, openai.NotFoundError):
        cls = LLMNotFoundError
    elif isinstance(error, openai.InternalServerError):
        cls = LLMServerError
    elif isinstance(error, openai.APIStatusError) and error.status_code >= 500:
        cls = LLMServerError
    elif isinstance(error, openai.BadRequestError):
        cls = LLMBadRequestError
    else:
        cls = LLMError
    wrapped = cls(str(error) or type(error).__name__)
    wrapped.__cause__ = error
    return wrapped


def is_retryable(error: Exception) -> bool:
    return wrap_openai_error(error).retryable


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for admin notifications and logs.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, LLMRateLimitError) or "429" in s or t == "RateLimitError":
        return "⚠️ Rate Limited: API provider is temporarily rate-limited. Please retry shortly."
    if isinstance(error, LLMAuthError) or "401" in s or "Unauthorized" in s:
        return "❌ Authentication Error: Invalid API key or credentials."
    if isinstance(error, LLMNotFoundError) or "404" in s:
        return "❌ Not Found: The requested model or resource was not found."
    if isinstance(error, LLMForbiddenError) or "403" in s:
        return "❌ Forbidden: You don't have permission to access this resource."
    if isinstance(error, LLMTimeoutError) or t in ("TimeoutError", "ReadTimeout"):
        return "⏱️ Timeout: The API provider did not answer in time."
    if isinstance(error, LLMConnectionError) or "Connection" in t or "ECONNREFUSED" in s:
        return "❌ Connection Error: Unable to connect to the API provider."
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: Exception) -> str:
    """
    Short, safe error message suitable for end users.
    """
    if is_retryable(error):
        return "The AI service is busy right now. Please try again in a little while."
    return "An error occurred while processing your request."

