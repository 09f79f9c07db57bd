"""User repository."""

from sqlalchemy.ext.asyncio import AsyncSession

from addiscare.db.models.user import UserRow
from addiscare.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, UserRow)

    async def get(self, user_id: str) -> UserRow | None:
        return await self.get_by_id("user_id", user_id)

    async def list_by_role(self, role: str) -> list[UserRow]:
        return await self.list_by_field("role", role)
