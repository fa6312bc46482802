"""Exception types shared across Gated Calc.

Expression errors describe bad user input and are always recoverable.
``StoreError`` wraps infrastructure failures from the database-backed stores
so they are never confused with a policy refusal.
"""

from typing import Optional


class GatedCalcError(Exception):
    """Base exception for all Gated Calc errors."""

    pass


class ExpressionError(GatedCalcError):
    """An expression could not be evaluated."""

    def __init__(
        self,
        message: str,
        processed_expression: Optional[str] = None,
        position: Optional[int] = None,
    ):
        self.processed_expression = processed_expression
        self.position = position
        super().__init__(message)


class ExpressionSyntaxError(ExpressionError):
    """Unknown token, unbalanced parentheses, dangling operator or empty input."""

    pass


class ExpressionArithmeticError(ExpressionError, ArithmeticError):
    """Division by zero or a result that is not a finite number."""

    pass


class StoreError(GatedCalcError):
    """A permission, quota, user or history store could not be reached."""

    def __init__(self, message: str, store: str = ""):
        self.store = store
        super().__init__(message)


class RegistrationError(GatedCalcError):
    """A new user could not be registered (invalid or duplicate data)."""

    pass


class AuthenticationError(GatedCalcError):
    """Login failed: unknown DPI, wrong password or deactivated account."""

    pass
