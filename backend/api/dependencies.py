"""
FastAPI dependencies shared by the routers.

The engine client, guard and config live on app.state; they are created once
in the lifespan (or injected by create_app() in tests).
"""

from fastapi import Depends
from fastapi.requests import HTTPConnection

from api.errors import ForbiddenError
from config.settings import AppConfig
from engine.interface import EngineClient
from guard.operational_guard import Operation, OperationalGuard, OperationForbidden


def get_engine(connection: HTTPConnection) -> EngineClient:
    return connection.app.state.engine


def get_guard(connection: HTTPConnection) -> OperationalGuard:
    return connection.app.state.guard


def get_config(connection: HTTPConnection) -> AppConfig:
    return connection.app.state.config


def require_operation(operation: Operation):
    """
    Dependency factory that denies destructive operations in safe mode.

    Use in the route decorator so the check runs before the handler:

        @router.delete("/{container_id}",
                       dependencies=[Depends(require_operation(Operation.CONTAINER_REMOVE))])
    """
    async def check_operation(guard: OperationalGuard = Depends(get_guard)) -> None:
        try:
            guard.ensure_allowed(operation)
        except OperationForbidden as e:
            raise ForbiddenError(e.message) from e

    return check_operation
