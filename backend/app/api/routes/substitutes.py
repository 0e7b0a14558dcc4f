from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_actor, get_substitute_workflow, require_roles
from app.models.substitute_request import SubstituteRequestStatus
from app.models.user import User, UserRole
from app.schemas.substitute import SubstituteDecision, SubstituteRequestOut
from app.services.actor import Actor
from app.services.substitutes import SubstituteWorkflow

router = APIRouter()


@router.get("", response_model=list[SubstituteRequestOut])
def list_substitute_requests(
    request_status: SubstituteRequestStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(require_roles(UserRole.admin)),
    workflow: SubstituteWorkflow = Depends(get_substitute_workflow),
) -> list[SubstituteRequestOut]:
    return workflow.list_requests(request_status)


@router.post("/{request_id}/approve", response_model=SubstituteRequestOut)
def approve_substitute_request(
    request_id: str,
    actor: Actor = Depends(get_current_actor),
    workflow: SubstituteWorkflow = Depends(get_substitute_workflow),
) -> SubstituteRequestOut:
    return workflow.approve(request_id, actor)


@router.post("/{request_id}/deny", response_model=SubstituteRequestOut)
def deny_substitute_request(
    request_id: str,
    payload: SubstituteDecision | None = None,
    actor: Actor = Depends(get_current_actor),
    workflow: SubstituteWorkflow = Depends(get_substitute_workflow),
) -> SubstituteRequestOut:
    return workflow.deny(request_id, actor, payload.reason if payload else None)
