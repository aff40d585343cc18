"""
Tests for the stored-procedure path and its error mapping.
"""
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError, InvalidRequestError, ResourceClosedError

from warehouse_service.app.errors import (
    BusinessRuleViolation,
    InfrastructureError,
    SignaledDomainError,
    ValidationError,
)
from warehouse_service.app.procedure import (
    add_product_via_procedure,
    build_procedure_call,
    is_signaled_error,
    signaled_message,
)
from warehouse_service.app.schemas import WarehouseRequest

from conftest import payload


def make_session(dialect="mssql"):
    db = MagicMock()
    db.get_bind.return_value.dialect.name = dialect
    return db


def db_error(orig):
    return DBAPIError("CALL AddProductToWarehouse", {}, orig)


class FakePgError(Exception):
    """Mimics psycopg's error attributes."""

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = SimpleNamespace(message_primary=message)


class TestBuildProcedureCall:

    def test_mssql(self):
        sql = build_procedure_call("mssql", "AddProductToWarehouse")
        assert sql == (
            "EXEC AddProductToWarehouse @IdProduct=:IdProduct, @IdWarehouse=:IdWarehouse, "
            "@Amount=:Amount, @CreatedAt=:CreatedAt"
        )

    def test_postgresql(self):
        sql = build_procedure_call("postgresql", "public.add_product_to_warehouse")
        assert sql == "SELECT public.add_product_to_warehouse(:IdProduct, :IdWarehouse, :Amount, :CreatedAt)"

    def test_other_dialects_use_call(self):
        assert build_procedure_call("mysql", "AddProductToWarehouse").startswith("CALL AddProductToWarehouse(")


class TestSignaledErrors:

    def test_pymssql_number(self):
        exc = db_error(Exception(50000, b"Order already fulfilled"))
        assert is_signaled_error(exc)
        assert signaled_message(exc) == "Order already fulfilled"

    def test_mysql_signal(self):
        exc = db_error(Exception(1644, "No matching order"))
        assert is_signaled_error(exc)
        assert signaled_message(exc) == "No matching order"

    def test_postgres_raise_exception(self):
        exc = db_error(FakePgError("Warehouse does not exist", "P0001"))
        assert is_signaled_error(exc)
        assert signaled_message(exc) == "Warehouse does not exist"

    def test_ordinary_errors_are_not_signals(self):
        assert not is_signaled_error(db_error(Exception(2627, "Violation of PRIMARY KEY constraint")))
        assert not is_signaled_error(db_error(FakePgError("deadlock detected", "40P01")))


class TestAddProductViaProcedure:

    def test_returns_new_id_and_commits(self):
        db = make_session("postgresql")
        db.execute.return_value.scalar.return_value = 9

        new_id = add_product_via_procedure(
            db, WarehouseRequest(**payload(createdAt="2024-01-02T08:00:00+00:00")), "AddProductToWarehouse"
        )

        assert new_id == 9
        db.commit.assert_called_once()
        params = db.execute.call_args.args[1]
        assert params == {
            "IdProduct": 1,
            "IdWarehouse": 1,
            "Amount": 3,
            "CreatedAt": datetime(2024, 1, 2, 8, 0),
        }

    def test_null_result(self):
        db = make_session()
        db.execute.return_value.scalar.return_value = None

        with pytest.raises(BusinessRuleViolation):
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

    def test_signaled_error_maps_to_bad_request(self):
        db = make_session("postgresql")
        db.execute.side_effect = db_error(FakePgError("Order has already been fulfilled", "P0001"))

        with pytest.raises(SignaledDomainError) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.status_code == 400
        assert exc.value.message == "Order has already been fulfilled"
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_other_error_maps_to_infrastructure(self):
        db = make_session()
        db.execute.side_effect = db_error(Exception(-1, "Login timeout expired"))

        with pytest.raises(InfrastructureError) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.status_code == 500
        assert "Login timeout expired" in exc.value.message

    def test_rejects_amount_before_calling(self):
        db = make_session()

        with pytest.raises(ValidationError):
            add_product_via_procedure(db, WarehouseRequest(**payload(amount=0)), "AddProductToWarehouse")

        assert db.method_calls == []

    def test_no_result_set(self):
        """A procedure that only reports row counts has no id to return."""
        db = make_session()
        db.execute.return_value.returns_rows = False

        with pytest.raises(BusinessRuleViolation) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.message == "Procedure execution failed"
        db.execute.return_value.scalar.assert_not_called()
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_closed_result(self):
        db = make_session("mysql")
        db.execute.return_value.scalar.side_effect = ResourceClosedError(
            "This result object does not return rows. It has been closed automatically."
        )

        with pytest.raises(BusinessRuleViolation) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.status_code == 400
        db.rollback.assert_called_once()

    def test_non_integer_result(self):
        db = make_session()
        db.execute.return_value.scalar.return_value = "not-an-id"

        with pytest.raises(InfrastructureError) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.message.startswith("Database error:")
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_other_sqlalchemy_error(self):
        db = make_session()
        db.execute.side_effect = InvalidRequestError("Session is in 'prepared' state")

        with pytest.raises(InfrastructureError) as exc:
            add_product_via_procedure(db, WarehouseRequest(**payload()), "AddProductToWarehouse")

        assert exc.value.status_code == 500
        assert "prepared" in exc.value.message
        db.rollback.assert_called_once()
