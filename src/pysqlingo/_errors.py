"""Exception hierarchy for SQL expression building and rendering."""


class ExpressionError(Exception):
    """Base exception for expression building and rendering errors.

    Provides dual messaging: a sanitized user-facing message and
    internal details for logging (CWE-209 prevention).
    """

    def __init__(
        self,
        user_message: str,
        internal_details: str = "",
        wrapped: Exception | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details or user_message
        self.wrapped = wrapped

    def internal(self) -> str:
        return self.internal_details


class UnsupportedTypeError(ExpressionError):
    """Raised when a value cannot be marshalled into SQL."""


class InvalidExpressionError(ExpressionError):
    """Raised when an expression node is malformed."""


class InvalidFieldNameError(ExpressionError):
    """Raised when a table or field name is invalid or unknown."""


class UnknownFieldError(InvalidFieldNameError):
    """Raised when a CEL identifier matches no field of the given tables."""


class AmbiguousFieldError(InvalidFieldNameError):
    """Raised when a CEL identifier matches fields of several tables."""


class UnsupportedExpressionError(ExpressionError):
    """Raised when a CEL expression type is not supported."""


class InvalidArgumentsError(ExpressionError):
    """Raised when function arguments are invalid."""


class CELSyntaxError(ExpressionError):
    """Raised when a CEL expression cannot be parsed."""


class MaxDepthExceededError(ExpressionError):
    """Raised when recursion depth limit is exceeded."""


class MaxOutputLengthExceededError(ExpressionError):
    """Raised when SQL output length limit is exceeded."""


# Sanitized user-facing error message constants
ERR_MSG_UNSUPPORTED_TYPE = "unsupported type"
ERR_MSG_INVALID_EXPRESSION = "invalid expression"
ERR_MSG_UNSUPPORTED_EXPRESSION = "unsupported expression type"
ERR_MSG_INVALID_ARGUMENTS = "invalid function arguments"
ERR_MSG_INVALID_FIELD_ACCESS = "invalid field access"
ERR_MSG_SYNTAX_ERROR = "invalid CEL syntax"
