"""Translate entitlement engine errors into HTTP responses."""

import logging

from fastapi import HTTPException, status

from src.stockstay.core.exceptions import (
    AddonLimitExceeded,
    AuthenticationError,
    ConcurrentUpdateError,
    ConfigurationError,
    EntitlementError,
    FeatureNotAvailable,
    NotSubscribed,
    ProviderError,
    TeamNotFound,
    TrialNotAllowed,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (AuthenticationError, status.HTTP_400_BAD_REQUEST),
    (NotSubscribed, status.HTTP_400_BAD_REQUEST),
    (TrialNotAllowed, status.HTTP_400_BAD_REQUEST),
    (AddonLimitExceeded, status.HTTP_400_BAD_REQUEST),
    (FeatureNotAvailable, status.HTTP_403_FORBIDDEN),
    (TeamNotFound, status.HTTP_404_NOT_FOUND),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(error: EntitlementError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if status_code >= 500:
        logger.error(f"{type(error).__name__}: {error.message}")
    return HTTPException(status_code=status_code, detail=error.message)
