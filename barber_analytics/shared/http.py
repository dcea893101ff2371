"""Translate service Results into HTTP responses"""

import logging

from fastapi import HTTPException

from .errors import ErrorCode, ServiceError
from .result import Result

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CONSTRAINT_VIOLATION: 400,
    ErrorCode.PERMISSION_DENIED: 400,
    ErrorCode.NETWORK_ERROR: 500,
    ErrorCode.UNKNOWN_ERROR: 500,
}


def raise_for_error(error: ServiceError) -> None:
    status_code = STATUS_BY_CODE.get(error.code, 500)
    if status_code >= 500:
        logger.error(f"❌ {error.code.value}: {error.details or error.message}")
    raise HTTPException(status_code=status_code, detail=error.to_dict())


def unwrap(result: Result):
    """Return result.data or raise the mapped HTTPException"""
    if result.error is not None:
        raise_for_error(result.error)
    return result.data


def require_data(result: Result, not_found_message: str = "Registro não encontrado"):
    """Like unwrap, but an empty result is a 404"""
    data = unwrap(result)
    if data is None:
        raise HTTPException(
            status_code=404,
            detail={"code": ErrorCode.NOT_FOUND.value, "message": not_found_message, "errors": []},
        )
    return data
