"""
Centralized Error Handling and Logging
Maps the service error taxonomy onto HTTP responses and emits one structured
log entry per failure.
"""

import json
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from contextvars import ContextVar

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from reactive_demo.utils.errors import MalformedRequestError, PersistenceError

# Context variable for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

logger = logging.getLogger(__name__)

class ErrorHandlingConfig:
    """Centralized configuration for error handling behavior"""

    # Security settings
    SANITIZE_SENSITIVE_FIELDS = True
    SENSITIVE_FIELD_PATTERNS = [
        'password', 'token', 'key', 'secret', 'authorization',
        'auth', 'bearer', 'credential', 'api_key'
    ]

    LOG_HEADERS = True
    MAX_BODY_LOG_SIZE = 5000  # Truncate large values

    # Error response settings
    INCLUDE_TRACE_ID = True
    INCLUDE_TIMESTAMP = True

    @classmethod
    def is_sensitive_field(cls, field_name: str) -> bool:
        """Check if a field contains sensitive data"""
        field_lower = field_name.lower()
        return any(pattern in field_lower for pattern in cls.SENSITIVE_FIELD_PATTERNS)

    @classmethod
    def sanitize_data(cls, data: Union[Dict, str, Any]) -> Any:
        """Recursively sanitize sensitive data from logs"""
        if not cls.SANITIZE_SENSITIVE_FIELDS:
            return data

        if isinstance(data, dict):
            return {
                key: "***REDACTED***" if cls.is_sensitive_field(str(key)) else cls.sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [cls.sanitize_data(item) for item in data]
        elif isinstance(data, str) and len(data) > cls.MAX_BODY_LOG_SIZE:
            return data[:cls.MAX_BODY_LOG_SIZE] + "...[TRUNCATED]"
        else:
            return data

class StructuredLogger:
    """Structured logging with consistent format and context"""

    @staticmethod
    def log_error(
        error_type: str,
        message: str,
        request: Optional[Request] = None,
        exception: Optional[Exception] = None,
        extra_context: Optional[Dict] = None,
        include_traceback: bool = True,
        level: int = logging.ERROR
    ) -> str:
        """Log structured error with full context, returns the trace ID"""

        # Reuse the request's trace ID when there is one
        trace_id = request_id_var.get('') or str(uuid.uuid4())[:8]

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "trace_id": trace_id,
            "error_type": error_type,
            "message": message,
            "level": logging.getLevelName(level)
        }

        if request:
            headers = dict(request.headers)
            log_entry["request"] = {
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "headers": ErrorHandlingConfig.sanitize_data(headers) if ErrorHandlingConfig.LOG_HEADERS else {},
                "client_ip": request.client.host if request.client else None,
                "user_agent": headers.get("user-agent", "unknown")
            }

        if exception:
            log_entry["exception"] = {
                "type": type(exception).__name__,
                "details": str(exception),
                "module": getattr(exception, '__module__', 'unknown')
            }

            if include_traceback:
                log_entry["exception"]["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )

        if extra_context:
            log_entry["context"] = ErrorHandlingConfig.sanitize_data(extra_context)

        logger.log(level, json.dumps(log_entry, indent=2, default=str))

        return trace_id

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a trace ID to every request"""

    async def dispatch(self, request: Request, call_next):
        trace_id = str(uuid.uuid4())[:8]
        request_id_var.set(trace_id)
        request.state.trace_id = trace_id

        response = await call_next(request)
        # Add trace ID to response headers for client-side debugging
        response.headers["X-Trace-ID"] = trace_id
        return response

def build_error_response(status_code: int, error: str, message: str, trace_id: Optional[str], **extra) -> JSONResponse:
    """Build the JSON error body shared by every handler"""
    response_content = {
        "error": error,
        "message": message,
    }
    response_content.update(extra)

    if ErrorHandlingConfig.INCLUDE_TRACE_ID and trace_id:
        response_content["trace_id"] = trace_id

    if ErrorHandlingConfig.INCLUDE_TIMESTAMP:
        response_content["timestamp"] = datetime.now(timezone.utc).isoformat()

    return JSONResponse(status_code=status_code, content=response_content)

# Global Exception Handlers
async def malformed_request_handler(request: Request, exc: MalformedRequestError) -> JSONResponse:
    """Request body could not be decoded (HTTP 400)"""
    trace_id = StructuredLogger.log_error(
        "malformed_request",
        exc.message,
        request=request,
        exception=exc,
        extra_context={"details": exc.details},
        include_traceback=False,
        level=logging.WARNING
    )
    return build_error_response(400, "Malformed Request", exc.message, trace_id, detail=exc.details)

async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Store unavailable or write rejected (HTTP 500)"""
    trace_id = StructuredLogger.log_error(
        "persistence_error",
        exc.message,
        request=request,
        exception=exc,
        extra_context={"operation": exc.operation},
        include_traceback=True
    )
    # Don't expose store internals to the client
    return build_error_response(500, "Persistence Error", "The data store could not complete the operation", trace_id)

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with logging"""
    trace_id = None
    if exc.status_code >= 500:
        trace_id = StructuredLogger.log_error(
            f"http_{exc.status_code}",
            f"HTTP {exc.status_code}: {exc.detail}",
            request=request,
            exception=exc,
            extra_context={"status_code": exc.status_code},
            include_traceback=False
        )
    return build_error_response(exc.status_code, f"HTTP {exc.status_code}", exc.detail, trace_id)

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle FastAPI request validation errors as malformed requests"""
    validation_details = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "unknown")
        }
        for error in exc.errors()
    ]
    return await malformed_request_handler(
        request,
        MalformedRequestError("Request validation failed", validation_details)
    )

async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions"""
    trace_id = StructuredLogger.log_error(
        "internal_server_error",
        f"Unhandled exception: {str(exc)}",
        request=request,
        exception=exc,
        include_traceback=True
    )
    # Build safe response (don't expose internal details)
    return build_error_response(500, "Internal Server Error", "An unexpected error occurred", trace_id)

def setup_error_handling(app):
    """Setup error handling for the FastAPI app"""

    app.add_middleware(RequestContextMiddleware)

    # Most specific first
    app.add_exception_handler(MalformedRequestError, malformed_request_handler)
    app.add_exception_handler(PersistenceError, persistence_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Centralized error handling initialized")
