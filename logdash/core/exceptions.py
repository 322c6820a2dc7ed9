from typing import Optional, Dict, Any
from fastapi import status


class AppException(Exception):
    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppException):
    def __init__(self, message: str = "Validation failed", code: str = "VALIDATION_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, status.HTTP_400_BAD_REQUEST, details)


class MissingSelector(ValidationError):
    def __init__(self, parameter: str = "container"):
        super().__init__(
            f"container name must be provided as the '{parameter}' query parameter",
            "MISSING_SELECTOR",
            {"parameter": parameter}
        )


class ResourceError(AppException):
    pass


class ContainerNotFound(ResourceError):
    def __init__(self, container_name: str, reason: str = "no such container"):
        super().__init__(
            f"container {container_name} not found: {reason}",
            "CONTAINER_NOT_FOUND",
            status.HTTP_404_NOT_FOUND,
            {"container": container_name}
        )


class ExternalServiceError(AppException):
    pass


class RuntimeUnavailable(ExternalServiceError):
    def __init__(self, message: str = "Failed to connect to Docker daemon"):
        super().__init__(message, "RUNTIME_UNAVAILABLE", status.HTTP_500_INTERNAL_SERVER_ERROR)


class StreamError(ExternalServiceError):
    pass


class SourceReadError(StreamError):
    def __init__(self, container_name: str, message: str):
        super().__init__(
            f"reading logs of container {container_name} failed: {message}",
            "SOURCE_READ_ERROR",
            status.HTTP_502_BAD_GATEWAY,
            {"container": container_name}
        )


class SinkWriteError(StreamError):
    def __init__(self, message: str = "client connection closed"):
        # 499 is never sent, the client is already gone
        super().__init__(message, "SINK_WRITE_ERROR", 499)
