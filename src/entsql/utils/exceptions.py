"""Custom exception hierarchy."""

from typing import Optional


class EntsqlError(Exception):
    """Base exception for entsql-specific failures."""

    def __init__(
        self, message: str, suggestion: Optional[str] = None, context: Optional[dict] = None
    ):
        """Initialize exception with message, optional suggestion, and context.

        Args:
            message: Error message
            suggestion: Optional suggestion for fixing the error
            context: Optional dictionary with additional context
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with suggestion if available."""
        msg = self.message
        if self.suggestion:
            msg += f"\n\nSuggestion: {self.suggestion}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg += f"\n\nContext: {context_str}"
        return msg


class MetadataError(EntsqlError):
    """Raised when an entity type has no usable structural descriptor."""

    def __init__(
        self, message: str, suggestion: Optional[str] = None, context: Optional[dict] = None
    ):
        """Initialize metadata error.

        Common suggestions:
        - Declare the entity as a dataclass
        - Set ``__tablename__`` on the entity class
        - Mark at least one column with ``primary_key=True``
        """
        if suggestion is None:
            lowered = message.lower()
            if "primary key" in lowered:
                suggestion = (
                    "Load, update and delete address rows by primary key. "
                    "Declare one with column(primary_key=True)."
                )
            elif "__tablename__" in lowered:
                suggestion = "Set a class attribute such as __tablename__ = 'accounts'."
            elif "dataclass" in lowered:
                suggestion = "Decorate the entity class with @dataclass."
        super().__init__(message, suggestion, context)


class NotFoundError(EntsqlError):
    """Raised when a statement addressed by primary key matched no row.

    Covers a select returning zero rows, an update affecting zero rows and
    an INSERT/UPDATE ... RETURNING producing no row. Callers can branch on
    this instead of a generic execution failure.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        self.table = table
        self.operation = operation
        super().__init__(message, None, context)


class ScanError(EntsqlError):
    """Raised when a result row does not fit the entity's fields."""


class ExecutionError(EntsqlError):
    """Raised when SQL execution fails.

    The driver's original message is part of ``message`` and the original
    exception is kept on ``orig``.
    """

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[dict] = None,
        orig: Optional[BaseException] = None,
    ):
        """Initialize execution error.

        Common suggestions:
        - Check table and column names of the entity
        - Check RETURNING support of the target database
        """
        self.orig = orig
        if suggestion is None:
            lowered = message.lower()
            if "no such table" in lowered or "doesn't exist" in lowered:
                suggestion = (
                    "The table does not exist. Check the entity's __tablename__ "
                    "and that the table has been created."
                )
            elif "no such column" in lowered or "unknown column" in lowered:
                suggestion = (
                    "A column does not exist. Check column(db_field=...) declarations "
                    "against the table definition."
                )
            elif "returning" in lowered and "syntax" in lowered:
                suggestion = (
                    "The database rejected RETURNING. Remove returning_insert/"
                    "returning_update flags for this backend."
                )
        super().__init__(message, suggestion, context)


class QueryTimeoutError(ExecutionError):
    """Raised when a statement's deadline expires before or during execution."""

    def __init__(
        self, message: str, timeout: Optional[float] = None, context: Optional[dict] = None
    ):
        """Initialize query timeout error."""
        suggestion = (
            "The statement exceeded its deadline. Consider:\n"
            "  - Passing a larger timeout to the call\n"
            "  - Raising query_timeout in the configuration"
        )
        if timeout is not None:
            context = context or {}
            context["timeout_seconds"] = timeout
        super().__init__(message, suggestion, context)


class ValidationError(EntsqlError):
    """Raised when input validation fails."""

    def __init__(
        self, message: str, suggestion: Optional[str] = None, context: Optional[dict] = None
    ):
        if suggestion is None:
            if "identifier" in message.lower():
                suggestion = "Identifiers must be non-empty, optionally dot-qualified names."
        super().__init__(message, suggestion, context)
