from __future__ import annotations

from typing import Any, Dict, Optional


class CollabError(Exception):
    """Base class for failures reported back to the originator of a mutation."""

    code = "collab_error"
    status_code = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(CollabError):
    """Mutation payload is malformed; raised before the store is touched."""

    code = "validation_error"
    status_code = 400


class NotFoundError(CollabError):
    code = "not_found"
    status_code = 404

    def __init__(
        self, message: str = "Project not found", *, project_id: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.project_id = project_id


class StoreUnavailableError(CollabError):
    """Underlying storage I/O failed. The core never retries."""

    code = "store_unavailable"
    status_code = 503


__all__ = [
    "CollabError",
    "NotFoundError",
    "StoreUnavailableError",
    "ValidationError",
]
