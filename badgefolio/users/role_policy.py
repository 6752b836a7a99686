"""
Role Policy
Decides which role changes, password resets, deletions and invitations
an actor may perform against a target user.

Every check returns a PolicyDecision; routers turn a denial into a 403
carrying the decision's reason.
"""

from dataclasses import dataclass

from badgefolio.config import is_super_admin_email, normalize_email
from badgefolio.users.user_models import Role

VALID_ROLES = {role.value for role in Role}

# Single-step upgrade path available to regular admins
PROMOTION_PATHS = {
    Role.STUDENT.value: Role.TEACHER.value,
    Role.TEACHER.value: Role.ADMIN.value,
}


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = PolicyDecision(True)


def deny(reason: str) -> PolicyDecision:
    return PolicyDecision(False, reason)


def is_same_user(actor, target: dict) -> bool:
    if target.get("_id") is not None and str(target["_id"]) == actor.user_id:
        return True
    return normalize_email(target.get("email")) == normalize_email(actor.email)


def check_role_change(actor, target: dict, new_role: str) -> PolicyDecision:
    """
    Role change matrix:
        super admin -> any change on anyone but itself
        admin       -> student->teacher, teacher->admin; never another admin
        teacher     -> student->teacher
        student     -> nothing
    """
    if new_role not in VALID_ROLES:
        return deny("Invalid role")

    if is_same_user(actor, target):
        return deny("You cannot change your own role")

    if is_super_admin_email(target.get("email")):
        return deny("Cannot change super admin role")

    if actor.is_super_admin:
        return ALLOW

    target_role = target.get("role", Role.STUDENT.value)

    if actor.role == Role.TEACHER.value:
        if target_role == Role.STUDENT.value and new_role == Role.TEACHER.value:
            return ALLOW
        return deny("Teachers can only upgrade students to teacher role")

    if actor.role == Role.ADMIN.value:
        if target_role == Role.ADMIN.value:
            return deny("Admins cannot modify other admins")
        if PROMOTION_PATHS.get(target_role) == new_role:
            return ALLOW
        return deny("Invalid role upgrade path")

    return deny("Students cannot modify roles")


def check_password_reset(actor, target: dict) -> PolicyDecision:
    if is_super_admin_email(target.get("email")):
        return deny("Cannot reset super admin password")

    if actor.is_super_admin:
        return ALLOW

    target_role = target.get("role", Role.STUDENT.value)

    if actor.role == Role.ADMIN.value:
        if target_role == Role.ADMIN.value:
            return deny("Admins cannot reset passwords for other admins")
        return ALLOW

    if actor.role == Role.TEACHER.value:
        if target_role == Role.STUDENT.value:
            return ALLOW
        return deny("Teachers can only reset passwords for students")

    return deny("Students cannot reset passwords")


def check_user_deletion(actor, target: dict) -> PolicyDecision:
    if is_same_user(actor, target):
        return deny("Cannot delete your own account")

    if is_super_admin_email(target.get("email")):
        return deny("Cannot delete super admin account")

    if not actor.is_admin:
        return deny("Admin access required")

    if target.get("role") == Role.ADMIN.value and not actor.is_super_admin:
        return deny("Only super admin can delete admin accounts")

    return ALLOW


def check_user_creation(actor, role: str) -> PolicyDecision:
    if role not in VALID_ROLES:
        return deny("Invalid role")
    if not actor.is_admin:
        return deny("Forbidden")
    if role == Role.ADMIN.value and not actor.is_super_admin:
        return deny("Only super admins can create admin users")
    return ALLOW


def check_invitation(actor, role: str) -> PolicyDecision:
    if role not in VALID_ROLES:
        return deny("Invalid role")
    if not (actor.is_admin or actor.role == Role.TEACHER.value):
        return deny("Forbidden")
    if role == Role.ADMIN.value and not actor.is_admin:
        return deny("You do not have permission to create admin invitations")
    return ALLOW


def check_invitation_deletion(actor, invitation: dict) -> PolicyDecision:
    if actor.is_admin:
        return ALLOW
    if actor.role == Role.TEACHER.value and normalize_email(invitation.get("invited_by")) == normalize_email(actor.email):
        return ALLOW
    return deny("You can only delete invitations that you created")
