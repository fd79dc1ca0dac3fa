"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Repository-specific exceptions. SQLAlchemy errors never leave
the repository layer unwrapped.

============================================================
USAGE
============================================================
SymbolStore catches SQLAlchemy exceptions and re-raises them as
repository exceptions with context. Lifecycle code catches
RepositoryException where a single symbol's failure must not
abort a batch.

============================================================
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"


class RecordNotFoundError(RepositoryException):
    """
    Raised when a record expected to exist cannot be found.
    """

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "id"
    ) -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            repository_name=repository_name,
            operation="get",
            details={id_field: str(record_id)}
        )
        self.record_id = record_id
        self.id_field = id_field


class DuplicateRecordError(RepositoryException):
    """
    Raised when a unique constraint rejects an insert.
    """

    def __init__(
        self,
        repository_name: str,
        constraint_field: str,
        value: Any
    ) -> None:
        super().__init__(
            message=f"Duplicate record: {constraint_field}={value} already exists",
            repository_name=repository_name,
            operation="create",
            details={"field": constraint_field, "value": str(value)}
        )
        self.constraint_field = constraint_field
        self.value = value


class ImmutableRecordError(RepositoryException):
    """
    Raised when attempting to overwrite a write-once field.
    """

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        attempted_operation: str
    ) -> None:
        super().__init__(
            message=f"Cannot {attempted_operation} on record {record_id}",
            repository_name=repository_name,
            operation=attempted_operation,
            details={"record_id": str(record_id)}
        )
        self.record_id = record_id
        self.attempted_operation = attempted_operation


class QueryError(RepositoryException):
    """
    Raised when a query execution fails.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class ConnectionError(RepositoryException):
    """
    Raised when the database cannot be reached.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )
