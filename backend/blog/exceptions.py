"""
Counter faults and the DRF exception handler.

Taxonomy:
- GuardViolation:      a guarded decrement matched no row (already at zero).
                       Logged and swallowed by the rules engine.
- TransientStoreFault: the database rejected an operation. Propagates and
                       aborts the enclosing transaction.
- InvariantViolation:  the store is not in the state an operation expected.
                       The cascade treats "post already removed" as a benign
                       race; everywhere else it propagates.
"""
from contextlib import contextmanager
import logging

from django.db import DatabaseError, IntegrityError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CounterError(Exception):
    """Base class for counter maintenance faults."""


class GuardViolation(CounterError):
    def __init__(self, update):
        self.update = update
        super().__init__(f"Guard {update.guard} matched no row for {update}")


class TransientStoreFault(CounterError):
    pass


class InvariantViolation(CounterError):
    pass


@contextmanager
def translate_store_errors(operation: str):
    """Re-raise database errors raised inside the block as TransientStoreFault."""
    try:
        yield
    except DatabaseError as exc:
        raise TransientStoreFault(f"{operation} failed: {exc}") from exc


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Logs all exceptions
    2. Converts counter faults and Django exceptions to DRF responses
    3. Provides consistent error format
    """

    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, TransientStoreFault):
        logger.error(f"Store fault: {exc}")
        return Response(
            {'error': 'The operation could not be completed. Please retry.'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    if isinstance(exc, InvariantViolation):
        logger.warning(f"InvariantViolation: {exc}")
        return Response(
            {'error': str(exc)},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, IntegrityError):
        logger.warning(f"IntegrityError: {exc}")
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception(f"Unhandled exception: {exc}")

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
