# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Typed adapter over the Account Store (``users`` collection)."""
from typing import Optional

from teamflow.models.domain import Role, User


class AccountClient:
    def __init__(self, users) -> None:
        self._users = users

    def get_user(self, user_id: int) -> User:
        return User.model_validate(self._users.get(user_id))

    def list_users(self, role: Optional[Role] = None,
                   active: Optional[bool] = None) -> list[User]:
        records = self._users.list(
            role=role.value if role is not None else None, active=active,
        )
        return [User.model_validate(r) for r in records]

    def set_role(self, user_id: int, role: Role) -> User:
        return User.model_validate(self._users.update(user_id, {"role": role.value}))

    def set_active(self, user_id: int, active: bool) -> User:
        return User.model_validate(self._users.update(user_id, {"active": active}))

    def ping(self) -> bool:
        return self._users.ping()
