"""
Authorization policy shared by every service.

Services ask one question, ``can(user, action, resource)``, instead of
comparing roles and owner ids inline.  ``authorize`` raises
``ForbiddenError`` when the answer is no.

Rules
-----
- READ a post: public posts for everyone; private posts for the owner and
  admins.
- INTERACT with a post (like, unlike, comment): public posts only, for
  every caller including the owner and admins.
- UPDATE / DELETE a post or comment: the owner or an admin.
"""
import enum

from blog_api.exceptions import ForbiddenError
from blog_api.models import PostStatus, User, UserRole


class Action(str, enum.Enum):
    READ = "read"
    INTERACT = "interact"
    UPDATE = "update"
    DELETE = "delete"


def is_admin(user: User | None) -> bool:
    return user is not None and user.role == UserRole.ADMIN


def is_owner(user: User | None, resource) -> bool:
    return user is not None and resource.user_id == user.id


def can(user: User | None, action: Action, resource) -> bool:
    if action is Action.READ:
        return resource.status == PostStatus.PUBLIC or is_admin(user) or is_owner(user, resource)
    if action is Action.INTERACT:
        return resource.status == PostStatus.PUBLIC
    return is_admin(user) or is_owner(user, resource)


def authorize(user: User | None, action: Action, resource, message: str | None = None) -> None:
    if not can(user, action, resource):
        raise ForbiddenError(message)


def require_admin(user: User | None) -> None:
    if not is_admin(user):
        raise ForbiddenError("Administrator privileges required")
