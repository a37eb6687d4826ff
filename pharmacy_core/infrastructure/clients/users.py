"""Admin user management client"""

from typing import List

from pharmacy_core.domain.models import User
from pharmacy_core.infrastructure.clients.base import PharmacyApiClient
from pharmacy_core.infrastructure.clients.payloads import UserPayload, parse_many


class UsersClient(PharmacyApiClient):
    async def list_users(self) -> List[User]:
        data = await self._request("GET", "/admin/users", endpoint="users.list")
        return [payload.to_domain() for payload in parse_many(UserPayload, data)]

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/admin/users/{user_id}", endpoint="users.delete")
