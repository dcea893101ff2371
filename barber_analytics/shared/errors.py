"""Error taxonomy and database error normalization"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class ServiceError:
    """User-facing error carried by a Result"""

    code: ErrorCode
    message: str
    details: Optional[Any] = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message, "errors": list(self.errors)}


# User-facing messages (pt-BR)
MSG_NETWORK = "Erro de conexão. Verifique sua internet e tente novamente."
MSG_TIMEOUT = "Operação demorou muito para ser concluída. Tente novamente."
MSG_DUPLICATE = "Já existe um registro com essas informações."
MSG_FOREIGN_KEY = "Referência inválida. Verifique os dados informados."
MSG_INVALID_DATA = "Dados inválidos. Verifique os valores informados."
MSG_PERMISSION = "Sem permissão para acessar este recurso"
MSG_SESSION_EXPIRED = "Sessão expirada. Faça login novamente."
MSG_NOT_FOUND = "Registro não encontrado"
MSG_UNKNOWN = "Erro interno do sistema. Tente novamente."
MSG_INSUFFICIENT_STOCK = "Estoque insuficiente para esta operação"

# Postgres SQLSTATE -> (code, message)
PG_ERROR_CODES = {
    "23505": (ErrorCode.CONSTRAINT_VIOLATION, MSG_DUPLICATE),
    "23503": (ErrorCode.CONSTRAINT_VIOLATION, MSG_FOREIGN_KEY),
    "23514": (ErrorCode.VALIDATION_ERROR, MSG_INVALID_DATA),
    "23502": (ErrorCode.VALIDATION_ERROR, MSG_INVALID_DATA),
    "42501": (ErrorCode.PERMISSION_DENIED, MSG_PERMISSION),
    "57014": (ErrorCode.NETWORK_ERROR, MSG_TIMEOUT),
}

# Driver message fragments -> SQLSTATE, for backends without pgcode (SQLite)
MESSAGE_HINTS = [
    ("unique constraint", "23505"),
    ("duplicate key", "23505"),
    ("foreign key", "23503"),
    ("check constraint", "23514"),
    ("not null constraint", "23502"),
    ("permission denied", "42501"),
    ("statement timeout", "57014"),
]


def _sqlstate(exc: SQLAlchemyError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def normalize_db_error(
    exc: Exception,
    messages: Optional[dict[ErrorCode, str]] = None,
    unique_messages: Optional[dict[str, str]] = None,
) -> ServiceError:
    """
    Map a database exception to a ServiceError.

    Args:
        exc: Exception raised by SQLAlchemy or the DBAPI driver
        messages: Per-code message overrides for a repository
        unique_messages: Column fragment -> message, used on unique violations
            (e.g. {"sku": "SKU já existe para esta unidade"})
    """
    raw_message = str(getattr(exc, "orig", None) or exc)
    lowered = raw_message.lower()

    code: Optional[ErrorCode] = None
    message: Optional[str] = None

    if isinstance(exc, NoResultFound):
        code, message = ErrorCode.NOT_FOUND, MSG_NOT_FOUND
    else:
        sqlstate = _sqlstate(exc) if isinstance(exc, SQLAlchemyError) else None
        if not sqlstate:
            for fragment, state in MESSAGE_HINTS:
                if fragment in lowered:
                    sqlstate = state
                    break

        if sqlstate in PG_ERROR_CODES:
            code, message = PG_ERROR_CODES[sqlstate]
            if sqlstate == "23505" and unique_messages:
                for column, unique_message in unique_messages.items():
                    if column in lowered:
                        message = unique_message
                        break
                else:
                    message = (messages or {}).get(code, message)
                return ServiceError(code=code, message=message, details=raw_message)
        elif "jwt" in lowered:
            code, message = ErrorCode.PERMISSION_DENIED, MSG_SESSION_EXPIRED
        elif isinstance(exc, (OperationalError, DisconnectionError, InterfaceError, PoolTimeoutError)):
            code, message = ErrorCode.NETWORK_ERROR, MSG_NETWORK
        elif isinstance(exc, DBAPIError) and exc.connection_invalidated:
            code, message = ErrorCode.NETWORK_ERROR, MSG_NETWORK
        else:
            code, message = ErrorCode.UNKNOWN_ERROR, MSG_UNKNOWN

    if messages and code in messages:
        message = messages[code]

    return ServiceError(code=code, message=message, details=raw_message)
