"""
Error taxonomy for the fulfillment workflow.

Each error carries the HTTP status it is rendered with; main.py installs a
single exception handler for the base class.
"""


class FulfillmentError(Exception):
    """Base class for every error the warehouse endpoints report to the client."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FulfillmentError):
    """Bad input, e.g. a non-positive amount."""
    status_code = 400


class NotFoundError(FulfillmentError):
    """A referenced product, warehouse or movement does not exist."""
    status_code = 404


class BusinessRuleViolation(FulfillmentError):
    """No matching order, order already fulfilled, or the procedure returned nothing."""
    status_code = 400


class SignaledDomainError(FulfillmentError):
    """An application-raised error signalled by the stored procedure."""
    status_code = 400


class InfrastructureError(FulfillmentError):
    """Connection or query failure, or any database error not otherwise categorised."""
    status_code = 500
