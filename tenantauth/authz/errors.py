"""
Typed failures raised by the authorization core.

Every error carries a stable machine-readable ``code``, a human-readable
``message`` and the HTTP ``status_code`` the web layer should answer with.
The core never imports FastAPI; translation to a response happens in one
exception handler registered by ``tenantauth.main.create_app``.
"""

from __future__ import annotations


class AuthorizationError(Exception):
    """Base class for every failure the core reports to its caller."""

    code: str = "FORBIDDEN"
    message: str = "Forbidden"
    status_code: int = 403

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        return {"code": self.code, "message": self.message}


# ---- NotFound ------------------------------------------------------------------------


class NotFoundError(AuthorizationError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = 404


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"
    message = "User not found"

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class RoleNotFoundError(NotFoundError):
    code = "ROLE_NOT_FOUND"
    message = "Role not found"

    def __init__(self, role_id: int) -> None:
        self.role_id = role_id
        super().__init__(f"Role {role_id} not found")


class AssignmentNotFoundError(NotFoundError):
    code = "ROLE_NOT_ASSIGNED"
    message = "Role is not assigned to this user"


# ---- PreconditionFailed --------------------------------------------------------------


class PreconditionFailedError(AuthorizationError):
    code = "PRECONDITION_FAILED"
    message = "Precondition failed"
    status_code = 403


class UserInactiveError(PreconditionFailedError):
    code = "USER_INACTIVE"
    message = "User account is inactive"

    def __init__(self, user_id: int, status: str) -> None:
        self.user_id = user_id
        self.status = status
        if status == "BANNED":
            super().__init__("User account has been banned", code="USER_BANNED")
        else:
            super().__init__()


class NoActiveRoleError(PreconditionFailedError):
    code = "USER_HAS_NO_ROLE"
    message = "User has no active role assignment"

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__()


# ---- ScopeViolation ------------------------------------------------------------------


class ScopeViolationError(AuthorizationError):
    """A role-assignment rule rejected the mutation; ``rule`` names which one."""

    code = "INSUFFICIENT_SCOPE_TO_ASSIGN_ROLE"
    message = "Insufficient data scope to assign this role"
    status_code = 403

    def __init__(self, rule: str, message: str | None = None) -> None:
        self.rule = rule
        super().__init__(message, code=rule)


# ---- Conflict ------------------------------------------------------------------------


class ConflictError(AuthorizationError):
    code = "CONFLICT"
    message = "Resource conflict"
    status_code = 409


class RoleAlreadyAssignedError(ConflictError):
    code = "ROLE_ALREADY_ASSIGNED"
    message = "Role is already assigned to this user"


# ---- Infrastructure ------------------------------------------------------------------


class ContextLoadTimeoutError(AuthorizationError):
    code = "CONTEXT_LOAD_TIMEOUT"
    message = "Timed out while loading the user context"
    status_code = 503


class CacheError(Exception):
    """
    Raised by cache stores when the backend misbehaves.

    Never reaches callers of the core: ``ContextCache`` absorbs it and falls
    back to the relational store.
    """
