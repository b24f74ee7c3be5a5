"""
Error taxonomy shared by the calculation engine, stores and sync layer.

Pure layers (engine, quote aggregate) raise these synchronously. Store and
sync layers catch them around remote calls and turn them into status fields.
"""
from typing import Any, Dict, List, Optional


class MakerCostError(Exception):
    """Base class for all domain errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MakerCostError):
    """Malformed or out-of-range input reaching the engine or a store mutation"""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotAuthenticatedError(MakerCostError):
    """Remote persistence attempted without a signed-in user"""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class RemoteIOError(MakerCostError):
    """Network or server failure during a remote call"""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class ConflictError(MakerCostError):
    """Local and remote copies of the same entities diverged"""

    def __init__(self, conflicts: List[Any]):
        super().__init__(f"{len(conflicts)} conflicting record(s) need resolution")
        self.conflicts = conflicts


class NotFoundError(MakerCostError):
    """Lookup of an entity id that does not exist"""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class QuoteNotFoundError(NotFoundError):
    def __init__(self, quote_id: str):
        super().__init__("Quote", quote_id)
        self.quote_id = quote_id
