"""Permission classes for the event API.

Admins (staff or members of the ``Admin`` group) manage the candidate set and
delete registrations; assistants at the door search, convert and quick-add.
"""

from collections.abc import Iterable

from rest_framework.permissions import BasePermission

ROLE_ADMIN = "Admin"


def _user_in_groups(user, names: Iterable[str]) -> bool:
    groups = getattr(user, "groups", None)
    names_list = list(names)
    if not groups or not names_list:
        return False
    return groups.filter(name__in=names_list).exists()


def is_event_admin(user) -> bool:
    if not (user and getattr(user, "is_authenticated", False)):
        return False
    return bool(getattr(user, "is_staff", False)) or _user_in_groups(
        user, [ROLE_ADMIN]
    )


class IsEventAdmin(BasePermission):
    message = "Only event administrators can do this."

    def has_permission(self, request, view) -> bool:
        return is_event_admin(getattr(request, "user", None))
