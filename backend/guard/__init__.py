from guard.operational_guard import (
    DESTRUCTIVE_OPERATIONS,
    FORBIDDEN_MESSAGE,
    Operation,
    OperationalGuard,
    OperationForbidden,
    is_destructive,
)

__all__ = [
    'DESTRUCTIVE_OPERATIONS',
    'FORBIDDEN_MESSAGE',
    'Operation',
    'OperationalGuard',
    'OperationForbidden',
    'is_destructive',
]
