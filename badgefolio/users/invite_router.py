from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from badgefolio.auth.auth_utils import UserContext, get_current_user, require_roles
from badgefolio.database import get_db
from badgefolio.users import invite_service as service
from badgefolio.users.user_schemas import InvitationCreate, InvitationResend, InvitationResponse

# Included before the user router so that /users/invite is not read as a user id
router = APIRouter(prefix="/api/users/invite", tags=["Invitations"])

require_inviter = require_roles(
    "admin", "teacher", message="Forbidden - Only admins and teachers can manage invitations"
)


@router.get("", response_model=List[InvitationResponse])
async def list_invitations(
    user: UserContext = Depends(require_inviter),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    List invitations grouped by status (accepted before pending), newest first within each status
    """
    return await service.list_invitations(db)


@router.post("", status_code=201)
async def create_invitation(
    data: InvitationCreate,
    background_tasks: BackgroundTasks,
    user: UserContext = Depends(require_inviter),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Invite an email address with a role and a default password.
    Teachers may not invite admins.
    """
    doc = await service.create_invitation(db, user, data.dict())
    background_tasks.add_task(service.send_invitation_email, doc["email"], doc["role"], doc["token"])

    return {
        "message": "Invitation sent successfully",
        "invitation": service.format_invitation(doc),
    }


@router.post("/resend")
async def resend_invitation(
    data: InvitationResend,
    background_tasks: BackgroundTasks,
    user: UserContext = Depends(require_inviter),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    doc = await service.resend_invitation(db, data.email)
    background_tasks.add_task(service.send_invitation_email, doc["email"], doc["role"], doc["token"])
    return {"message": "Invitation resent successfully"}


@router.delete("/{invitation_id}")
async def delete_invitation(
    invitation_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.delete_invitation(db, user, invitation_id)
    return {"message": "Invitation deleted successfully"}
