# designstudio/handlers/base_handler.py
from typing import Optional
from fastapi import APIRouter, Header
from ..config import Config
from ..errors import AuthenticationError, AuthorizationError
from ..models.user import User, UserRole
from ..utils.security import ACCESS_TOKEN, verify_token

class BaseHandler:
    """Base class for HTTP handlers"""
    def __init__(self, db):
        self.db = db
        self.router = APIRouter()

    @staticmethod
    def is_admin(user: User) -> bool:
        """Check admin access"""
        return user.role == UserRole.ADMIN or user.user_id in Config.ADMIN_IDS

    async def _user_from_header(self, authorization: Optional[str]) -> Optional[User]:
        if not authorization:
            return None

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationError("Invalid authorization header")

        verified = verify_token(token.strip(), ACCESS_TOKEN)
        if not verified:
            raise AuthenticationError("Invalid or expired token")

        user_id, _ = verified
        async with self.db.session() as store:
            user = await store.get_user(user_id)
        if not user:
            raise AuthenticationError("User no longer exists")
        return user

    async def optional_user(self, authorization: Optional[str] = Header(None)) -> Optional[User]:
        return await self._user_from_header(authorization)

    async def require_user(self, authorization: Optional[str] = Header(None)) -> User:
        user = await self._user_from_header(authorization)
        if not user:
            raise AuthenticationError("Authentication required")
        return user

    async def require_admin(self, authorization: Optional[str] = Header(None)) -> User:
        user = await self.require_user(authorization)
        if not self.is_admin(user):
            raise AuthorizationError("Admin access required")
        return user
