"""Business-rule failures raised by the reservation services"""

from typing import Any, Dict, List, Optional


class ReservationError(Exception):
    """Base class for expected, caller-recoverable failures"""

    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, **self.details}


class ReservationValidationError(ReservationError):
    """Malformed or out-of-bounds input; nothing was changed"""

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        if field:
            details["field"] = field
        super().__init__(message, **details)


class NotFoundError(ReservationError):
    """Reservation, restaurant, floor plan or table could not be resolved"""

    status_code = 404


class ConflictError(ReservationError):
    """Overlap on a table or restaurant capacity exceeded"""

    status_code = 409

    def __init__(self, message: str, conflicts: Optional[List[Dict[str, Any]]] = None, **details: Any):
        super().__init__(message, conflicts=conflicts or [], **details)
        self.conflicts = conflicts or []


class IllegalTransitionError(ReservationError):
    """Disallowed status change or unmet transition precondition"""

    def __init__(self, message: str, current_status: str, allowed: List[str], **details: Any):
        super().__init__(message, current_status=current_status, allowed_transitions=allowed, **details)
        self.current_status = current_status
        self.allowed = allowed


class PermissionDeniedError(ReservationError):
    """Raised at the HTTP boundary when the actor may not touch the tenant"""

    status_code = 403
