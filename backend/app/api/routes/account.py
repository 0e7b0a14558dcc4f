from fastapi import APIRouter, Depends

from app.api.deps import get_current_actor, get_current_user
from app.models.user import User
from app.schemas.user import UserOut
from app.services.actor import Actor

router = APIRouter()


@router.get("/account", response_model=UserOut)
def get_account(
    current_user: User = Depends(get_current_user),
    actor: Actor = Depends(get_current_actor),
) -> UserOut:
    # Admin and readonly accounts usually have no roster row.
    account = UserOut.model_validate(current_user)
    account.teacher_id = actor.teacher.id if actor.teacher else None
    return account
