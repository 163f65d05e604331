# opsconsole/query/exceptions.py
"""Error taxonomy for the visual query builder."""

from typing import Optional


class QueryBuilderError(Exception):
    """Base class for all query builder errors."""
    pass


class QueryReferenceError(QueryBuilderError):
    """A mutation referenced a table or column absent from the query or the catalog."""

    def __init__(self, table: str, column: Optional[str] = None, message: Optional[str] = None):
        self.table = table
        self.column = column
        if message is None:
            if column is None:
                message = f"Unknown table '{table}'"
            else:
                message = f"Unknown column '{table}.{column}'"
        super().__init__(message)


class QueryValidationError(QueryBuilderError):
    """A mutation carried an invalid value (negative limit, malformed filter value, ...)."""
    pass


class QueryExecutionError(QueryBuilderError):
    """The execution collaborator could not produce rows."""
    pass


class QueryTimeoutError(QueryExecutionError):
    """Execution did not finish within the session timeout."""
    pass


class SessionBusyError(QueryExecutionError):
    """Another execution is still outstanding on the same session."""
    pass


class QueryCancelledError(QueryExecutionError):
    """Execution was abandoned by the user."""
    pass


class NothingToExecuteError(QueryExecutionError):
    """The model has no tables, so the compiled text is not a statement."""
    pass


class ReadOnlyViolationError(QueryExecutionError):
    """The executor refused a statement that is not a single SELECT."""
    pass


class PartialCatalogWarning(UserWarning):
    """Columns for a table could not be loaded; the table was left out of the catalog."""

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Columns for table '{table}' could not be loaded: {reason}")
