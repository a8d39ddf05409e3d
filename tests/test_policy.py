"""Unit tests for the authorization rules; no database needed."""
import pytest

from blog_api.exceptions import ForbiddenError
from blog_api.models import Post, PostStatus, User, UserRole
from blog_api.policy import Action, authorize, can, require_admin


def _user(user_id: int, role: UserRole = UserRole.USER) -> User:
    return User(id=user_id, username=f"u{user_id}", email=f"u{user_id}@example.com", role=role)


def _post(owner_id: int, status: PostStatus) -> Post:
    return Post(id=1, user_id=owner_id, status=status, title="t", description="d", content="c")


OWNER = _user(1)
STRANGER = _user(2)
ADMIN = _user(3, UserRole.ADMIN)


@pytest.mark.parametrize("user", [None, OWNER, STRANGER, ADMIN])
def test_everyone_reads_public_posts(user):
    assert can(user, Action.READ, _post(1, PostStatus.PUBLIC))


@pytest.mark.parametrize("user, allowed", [(None, False), (OWNER, True), (STRANGER, False), (ADMIN, True)])
def test_private_posts_readable_by_owner_and_admin(user, allowed):
    assert can(user, Action.READ, _post(1, PostStatus.PRIVATE)) is allowed


@pytest.mark.parametrize("user", [OWNER, STRANGER, ADMIN])
def test_interaction_follows_visibility_only(user):
    assert can(user, Action.INTERACT, _post(1, PostStatus.PUBLIC))
    assert not can(user, Action.INTERACT, _post(1, PostStatus.PRIVATE))


@pytest.mark.parametrize("action", [Action.UPDATE, Action.DELETE])
def test_owner_or_admin_modifies(action):
    post = _post(1, PostStatus.PUBLIC)
    assert can(OWNER, action, post)
    assert can(ADMIN, action, post)
    assert not can(STRANGER, action, post)
    assert not can(None, action, post)


def test_authorize_uses_custom_message():
    with pytest.raises(ForbiddenError) as exc_info:
        authorize(STRANGER, Action.DELETE, _post(1, PostStatus.PUBLIC), "nope")
    assert exc_info.value.message == "nope"
    assert exc_info.value.status_code == 403


def test_require_admin():
    require_admin(ADMIN)
    with pytest.raises(ForbiddenError):
        require_admin(OWNER)
    with pytest.raises(ForbiddenError):
        require_admin(None)
