"""
Gemini helpers: model construction and a threadpool wrapper around the
blocking generate_content call with timeout and retry on transient errors.
"""
from __future__ import annotations

import asyncio
import logging
import re

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from starlette.concurrency import run_in_threadpool

from tenk.config import settings

logger = logging.getLogger(__name__)

# 5xx-like failures are retried; quota errors (429) are not, callers map them to 429.
RETRYABLE_STATUS_PATTERN = re.compile(r"\b5\d{2}\b")
QUOTA_STATUS_PATTERN = re.compile(r"\b429\b|quota|resource.?exhausted", re.IGNORECASE)
MAX_ATTEMPTS = 3


def is_quota_error(exc: BaseException) -> bool:
    if isinstance(exc, google_exceptions.ResourceExhausted):
        return True
    return bool(QUOTA_STATUS_PATTERN.search(getattr(exc, "message", None) or str(exc)))


def _is_retryable_error(exc: BaseException) -> bool:
    if is_quota_error(exc):
        return False
    if isinstance(exc, (google_exceptions.ServerError, google_exceptions.ServiceUnavailable)):
        return True
    return bool(RETRYABLE_STATUS_PATTERN.search(getattr(exc, "message", None) or str(exc)))


def get_model(system_instruction: str | None = None, vision: bool = False) -> genai.GenerativeModel:
    """Configured GenerativeModel. Raises RuntimeError when no API key is set."""
    if not settings.google_gemini_api_key:
        raise RuntimeError("GOOGLE_GEMINI_API_KEY is not set")
    genai.configure(api_key=settings.google_gemini_api_key)
    name = (settings.gemini_vision_model or settings.gemini_model) if vision else settings.gemini_model
    return genai.GenerativeModel(name, system_instruction=system_instruction)


async def run_generate_content(model, contents, generation_config=None):
    """model.generate_content(contents) in a threadpool; retries timeouts and 5xx with backoff (1s, 2s)."""
    timeout = float(settings.gemini_request_timeout_seconds or 90)
    for attempt in range(MAX_ATTEMPTS):
        last = attempt == MAX_ATTEMPTS - 1
        try:
            return await asyncio.wait_for(
                run_in_threadpool(model.generate_content, contents, generation_config=generation_config),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Gemini request timed out after %ss (attempt %d)", timeout, attempt + 1)
            if last:
                raise
        except Exception as e:
            if last or not _is_retryable_error(e):
                raise
            logger.warning("Gemini request failed (attempt %d), retrying: %s", attempt + 1, e)
        await asyncio.sleep(2 ** attempt)
    raise RuntimeError("run_generate_content: unexpected exit")
