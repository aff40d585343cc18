"""
Stored-procedure path.

Delegates matching, fulfillment, pricing and insertion to the database
procedure (AddProductToWarehouse by default) and maps its single scalar
result, or its error, onto the fulfillment error taxonomy.
"""
import logging
import re
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, ResourceClosedError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import BusinessRuleViolation, InfrastructureError, SignaledDomainError
from .fulfillment import to_naive_utc, validate_amount
from .schemas import WarehouseRequest

logger = logging.getLogger(__name__)

# Error numbers drivers report for an application-raised error:
# SQL Server THROW / RAISERROR with a user message, MySQL SIGNAL.
SIGNALED_ERROR_NUMBERS = {50000, 1644}
# PostgreSQL RAISE EXCEPTION without an explicit ERRCODE.
SIGNALED_SQLSTATES = {"P0001"}

# pyodbc renders "[42000] [Microsoft][ODBC Driver 18 for SQL Server][SQL Server]<message> (50000) (SQLExecDirectW)"
_MSSQL_SIGNAL = re.compile(r"\[SQL Server\](?P<message>.*?)\s*\(50000\)")

_PARAMETERS = ("IdProduct", "IdWarehouse", "Amount", "CreatedAt")


def build_procedure_call(dialect_name: str, procedure_name: str) -> str:
    """SQL that invokes the procedure and yields its scalar result on the given dialect."""
    if dialect_name == "mssql":
        assignments = ", ".join(f"@{p}=:{p}" for p in _PARAMETERS)
        return f"EXEC {procedure_name} {assignments}"
    arguments = ", ".join(f":{p}" for p in _PARAMETERS)
    if dialect_name == "postgresql":
        return f"SELECT {procedure_name}({arguments})"
    return f"CALL {procedure_name}({arguments})"


def _error_number(orig: Any):
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_signaled_error(exc: DBAPIError) -> bool:
    """True when the database error was raised on purpose by the procedure."""
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in SIGNALED_SQLSTATES:
        return True
    if _error_number(orig) in SIGNALED_ERROR_NUMBERS:
        return True
    return _MSSQL_SIGNAL.search(str(orig)) is not None


def signaled_message(exc: DBAPIError) -> str:
    """The message the procedure raised, stripped of driver decoration."""
    orig = exc.orig
    diag = getattr(orig, "diag", None)
    primary = getattr(diag, "message_primary", None)
    if primary:
        return primary

    args = getattr(orig, "args", ())
    if len(args) >= 2 and _error_number(orig) in SIGNALED_ERROR_NUMBERS:
        message = args[1]
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        return str(message)

    match = _MSSQL_SIGNAL.search(str(orig))
    if match:
        return match.group("message")
    return str(orig)


def add_product_via_procedure(db: Session, request: WarehouseRequest, procedure_name: str) -> int:
    """Run the procedure and return the Product_Warehouse id it created."""
    validate_amount(request.amount)

    statement = build_procedure_call(db.get_bind().dialect.name, procedure_name)
    params = {
        "IdProduct": request.id_product,
        "IdWarehouse": request.id_warehouse,
        "Amount": request.amount,
        "CreatedAt": to_naive_utc(request.created_at),
    }

    try:
        result = db.execute(text(statement), params)
        # A procedure that only reports row counts yields no result set at all.
        value = result.scalar() if result.returns_rows else None
        if value is None:
            raise BusinessRuleViolation("Procedure execution failed")
        movement_id = int(value)
        db.commit()
    except DBAPIError as e:
        db.rollback()
        if is_signaled_error(e):
            message = signaled_message(e)
            logger.warning("Procedure %s rejected request: %s", procedure_name, message)
            raise SignaledDomainError(message) from e
        logger.exception("Procedure %s failed", procedure_name)
        raise InfrastructureError(f"Database error: {e.orig}") from e
    except ResourceClosedError as e:
        db.rollback()
        logger.warning("Procedure %s returned no result set", procedure_name)
        raise BusinessRuleViolation("Procedure execution failed") from e
    except BusinessRuleViolation:
        db.rollback()
        logger.warning("Procedure %s returned no id", procedure_name)
        raise
    except (SQLAlchemyError, TypeError, ValueError) as e:
        db.rollback()
        logger.exception("Procedure %s failed", procedure_name)
        raise InfrastructureError(f"Database error: {e}") from e

    logger.info("Procedure %s recorded movement %s", procedure_name, movement_id)
    return movement_id
