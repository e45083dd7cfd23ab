from __future__ import annotations

from fastapi import APIRouter, Depends, status

from tenantauth.authz.assignments import RoleAssignmentService
from tenantauth.authz.context import UserContext
from tenantauth.authz.store import RoleRecord
from tenantauth.schemas.security import RoleOut
from tenantauth.security.dependencies import get_current_context, get_role_assignment_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("/assignable", response_model=list[RoleOut])
def assignable_roles(
    context: UserContext = Depends(get_current_context),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
) -> list[RoleRecord]:
    return service.assignable_roles(context)


@router.post("/{role_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def assign_role(
    role_id: int,
    user_id: int,
    context: UserContext = Depends(get_current_context),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
) -> None:
    service.assign_role(context, user_id, role_id)


@router.delete("/{role_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_role(
    role_id: int,
    user_id: int,
    context: UserContext = Depends(get_current_context),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
) -> None:
    service.revoke_role(context, user_id, role_id)
