"""Retry utilities with exponential backoff for storage reads."""

import logging

from sqlalchemy.exc import InterfaceError, OperationalError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
import structlog


logger = structlog.get_logger(__name__)


# Transient connection failures on read paths only. Writes are never retried
# at this layer; a failed write rolls back the whole request transaction.
storage_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type((OperationalError, InterfaceError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
