"""
Error taxonomy shared by services and route handlers.

Services raise these; `create_app()` maps them to HTTP responses. Unauthorized
is not an exception here: the session guard answers 401 directly.
"""
from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from sqlalchemy.exc import SQLAlchemyError


class GameNightError(Exception):
    status_code = 500
    public_message = "Internal error."


class DataAccessError(GameNightError):
    status_code = 500
    public_message = "Could not complete the request."


class NotFound(GameNightError):
    status_code = 404
    public_message = "Not found."

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(GameNightError):
    status_code = 400
    public_message = "Invalid input."

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class Conflict(GameNightError):
    status_code = 409
    public_message = "Already exists."


@contextmanager
def data_access(operation: str) -> Generator[None, None, None]:
    """Wrap any SQLAlchemy failure in a DataAccessError naming the operation."""
    try:
        yield
    except SQLAlchemyError as e:
        raise DataAccessError(f"{operation} failed: {e}") from e
