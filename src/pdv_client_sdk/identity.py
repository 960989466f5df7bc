from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

USER_ID_HEADER = "X-User-ID"
USER_TYPE_HEADER = "X-User-Type"
ACCOUNT_ID_HEADER = "X-Conta-ID"


class UserType(str, Enum):
    OWNER = "usuario"
    EMPLOYEE = "funcionario"


class IdentityContext(BaseModel):
    """Who is operating the terminal, as handed over by the auth collaborator.

    The SDK never issues or validates it; it only forwards it on every request.
    Employees act on behalf of their owner's account (``account_id``); owners
    are their own account.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    user_type: UserType = UserType.OWNER
    account_id: str | None = None
    access_token: str | None = None
    operator_name: str | None = None

    @property
    def effective_account_id(self) -> str:
        if self.user_type == UserType.EMPLOYEE and self.account_id:
            return self.account_id
        return self.user_id

    def headers(self) -> dict[str, str]:
        headers = {
            USER_ID_HEADER: self.user_id,
            USER_TYPE_HEADER: self.user_type.value,
        }
        if self.user_type == UserType.EMPLOYEE and self.account_id:
            headers[ACCOUNT_ID_HEADER] = self.account_id
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers
