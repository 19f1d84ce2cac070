"""
Error taxonomy for the Demo Entity service
"""

from typing import Any, Dict, List, Optional


class DemoServiceError(Exception):
    """Base class for errors raised by this service"""


class MalformedRequestError(DemoServiceError):
    """Request body could not be decoded into the expected shape (client error)"""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class PersistenceError(DemoServiceError):
    """Store unreachable, schema absent, or write rejected (server error)"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation


class MigrationError(DemoServiceError):
    """Schema migrations could not be discovered, validated or applied"""
