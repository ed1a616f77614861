"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Caller input is malformed or out of range"""

    pass


class NotFoundError(DomainException):
    """Loan, rate change or borrower data does not exist"""

    pass


class InsufficientDataError(NotFoundError):
    """No cash-flow history available to underwrite the loan"""

    pass


class ConflictError(DomainException):
    """Rate change is already resolved or the record already exists"""

    pass


class ArithmeticPreconditionError(DomainException):
    """Solver input is non-finite or non-positive"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
