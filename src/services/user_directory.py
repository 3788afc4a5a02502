"""Demo user directory.

Business data for these users (account, marriage, signing state) lives with
the bot's agent and workflows; the directory only confirms that a user id is
known before a conversation is opened for it.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.exceptions import UserNotFoundError


@dataclass(frozen=True)
class DirectoryUser:
    id: int
    user_id: str
    name: str
    id_card: str
    phone: str
    login_code: str


DEMO_USERS: tuple[DirectoryUser, ...] = (
    DirectoryUser(
        id=1,
        user_id="szsfpt020251223173845080a5245392",
        name="测试用户1",
        id_card="350102199001011234",
        phone="13800138001",
        login_code="1",
    ),
    DirectoryUser(
        id=2,
        user_id="szsfpt020251201144124394a0790181",
        name="测试用户2",
        id_card="350102199202022345",
        phone="13800138002",
        login_code="2",
    ),
    DirectoryUser(
        id=3,
        user_id="szsfpt020251223172644365a9395630",
        name="测试用户3",
        id_card="350102199303033456",
        phone="13800138003",
        login_code="3",
    ),
    DirectoryUser(
        id=4,
        user_id="szsfpt020251223154606140a5064417",
        name="测试用户4",
        id_card="350102199404044567",
        phone="13800138004",
        login_code="4",
    ),
    DirectoryUser(
        id=5,
        user_id="szsfpt020251215101659991a9205534",
        name="测试用户5",
        id_card="350102199505055678",
        phone="13800138005",
        login_code="5",
    ),
)

_USERS_BY_ID: dict[str, DirectoryUser] = {user.user_id: user for user in DEMO_USERS}
_USERS_BY_LOGIN_CODE: dict[str, DirectoryUser] = {
    user.login_code: user for user in DEMO_USERS
}


def get_user(user_id: str) -> DirectoryUser | None:
    return _USERS_BY_ID.get(user_id)


def find_by_login_code(login_code: str) -> DirectoryUser | None:
    """Demo users sign in with their sequence number."""
    return _USERS_BY_LOGIN_CODE.get(login_code.strip())


def require_user(user_id: str) -> DirectoryUser:
    user = get_user(user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} is not registered")
    return user
