from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

User = get_user_model()

ROLE_STAFF = "Staff"
ROLE_ADMIN = "Admin"
ROLE_ASSISTANT = "Assistant"

# Staff users act through the flag; the other roles are plain groups.
ROLE_GROUPS = {
    ROLE_STAFF: (),
    ROLE_ADMIN: (ROLE_ADMIN,),
    ROLE_ASSISTANT: (ROLE_ASSISTANT,),
}


@dataclass
class RoleContext:
    user: User
    role: str


def make_role_user(role: str, username: str | None = None) -> RoleContext:
    """Create a user holding ``role`` with a known test password."""
    username = username or role.lower()
    user = User.objects.create_user(
        username=username,
        email=f"{username}@checkin.test",
        password="TestPass123!",  # noqa: S106
        is_staff=role == ROLE_STAFF,
    )
    for name in ROLE_GROUPS[role]:
        group, _ = Group.objects.get_or_create(name=name)
        user.groups.add(group)
    return RoleContext(user=user, role=role)
