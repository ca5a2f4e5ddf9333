import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from coursehub.exceptions import Forbidden
from coursehub.models import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The caller of an operation: who they are and in which role."""
    user_id: int
    role: Role

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.INSTRUCTOR, Role.ADMIN)


def resolve_principal(db: Session, user_id: int) -> Principal:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Forbidden("Unknown user")
    return Principal(user_id=user.id, role=Role(user.role))


def require_role(principal: Principal, *roles: Role):
    if principal.role not in roles:
        logger.warning("User %s (%s) refused; needs one of %s", principal.user_id, principal.role.value,
                       ", ".join(r.value for r in roles))
        raise Forbidden("You are not allowed to perform this action")
