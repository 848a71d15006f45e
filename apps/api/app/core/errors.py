from __future__ import annotations


class CRMError(Exception):
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class MissingFieldError(CRMError):
    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(f"missing required field: {field}")
        self.field = field


class InvalidRequestTypeError(CRMError):
    status_code = 400

    def __init__(self, request_type: str) -> None:
        super().__init__(f"invalid request type: {request_type}")
        self.request_type = request_type


class InvalidArgumentError(CRMError):
    status_code = 400


class UnauthorizedError(CRMError):
    status_code = 401


class NotFoundError(CRMError):
    """Zero records where one was expected.

    Extractors raise it; repositories translate it to ``None`` at their boundary.
    """

    status_code = 404


class AggregateNotFoundError(CRMError):
    status_code = 404

    def __init__(self, aggregate_id: str) -> None:
        super().__init__(f"aggregate not found: {aggregate_id}")
        self.aggregate_id = aggregate_id


class ConcurrencyError(CRMError):
    status_code = 409

    def __init__(self, aggregate_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"version conflict on {aggregate_id}: expected {expected_version}, stream is at {actual_version}"
        )
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class GraphNotConfiguredError(CRMError):
    status_code = 503

    def __init__(self) -> None:
        super().__init__("graph database is not configured (NEO4J_URI is empty)")


class InternalError(CRMError):
    status_code = 500
