# designstudio/services/identity_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional
from ..config import Config
from ..database.store import Store
from ..errors import AuthenticationError, DuplicateKeyError, NotFoundError, ValidationError
from ..models.address import Address
from ..models.checkout import GuestInfo
from ..models.order import GuestSessionData
from ..models.user import User, UserRole
from ..utils.messages import Messages
from ..utils.security import GUEST_TOKEN, generate_token, verify_token

class UserType(str, Enum):
    AUTHENTICATED = "authenticated"
    NEW = "new"
    GUEST = "guest"
    REGULAR = "regular"

@dataclass(frozen=True)
class IdentityResult:
    user: User
    user_type: UserType
    account_message: Optional[Dict[str, Any]] = None

    @property
    def is_guest_order(self) -> bool:
        return self.user_type in (UserType.NEW, UserType.GUEST)

    @property
    def is_existing_user_express_checkout(self) -> bool:
        return self.user_type == UserType.REGULAR

class IdentityService:
    """Maps a checkout to exactly one user record per email"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    async def resolve(self, store: Store, user_id: Optional[int] = None,
                      guest_info: Optional[GuestInfo] = None,
                      now: Optional[datetime] = None) -> IdentityResult:
        """Resolve an authenticated id or guest contact details to a user"""
        if user_id is not None:
            user = await store.get_user(user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found")
            return IdentityResult(user=user, user_type=UserType.AUTHENTICATED)

        if guest_info is None:
            raise ValidationError(
                "Either userId or guestInfo (email, phone) is required",
                [{"field": "guestInfo", "message": "required when userId is absent"}]
            )

        existing = await store.get_user_by_email(guest_info.email)
        if existing:
            return self._classify(existing, guest_info.email)

        fields: Dict[str, Any] = {
            'email': guest_info.email,
            'name': guest_info.name or 'Guest User',
            'phone': guest_info.phone,
            'role': UserRole.USER,
            'is_guest': True
        }
        if now is not None:
            fields['created_at'] = now

        try:
            async with store.savepoint():
                user = await store.insert_user(fields)
        except DuplicateKeyError:
            # A concurrent checkout created the row first
            self.logger.info(f"Email {guest_info.email} created concurrently, reusing existing user")
            existing = await store.get_user_by_email(guest_info.email)
            if not existing:
                raise
            return self._classify(existing, guest_info.email)

        self.logger.info(f"Created guest user {user.user_id} for {user.email}")
        return IdentityResult(user=user, user_type=UserType.NEW)

    def _classify(self, user: User, email: str) -> IdentityResult:
        if user.is_guest:
            return IdentityResult(user=user, user_type=UserType.GUEST)

        self.logger.info(f"Checkout email matched registered user {user.user_id}")
        return IdentityResult(
            user=user,
            user_type=UserType.REGULAR,
            account_message=Messages.existing_account_notice(email)
        )

    def issue_guest_session(self, user_id: int, now: datetime) -> GuestSessionData:
        """Token letting a guest track the order and later claim the account"""
        lifetime = timedelta(days=Config.GUEST_SESSION_DAYS)
        return GuestSessionData(
            token=generate_token(user_id, GUEST_TOKEN, int(lifetime.total_seconds()), now=now.timestamp()),
            expiry=now + lifetime,
            allow_account_claim=True
        )

    async def update_guest_billing_info(self, store: Store, user_id: int,
                                        address: Address) -> Optional[User]:
        """Copy billing details collected at payment onto a guest profile"""
        user = await store.get_user(user_id)
        if not user or not user.is_guest:
            return None

        fields: Dict[str, Any] = {}
        if address.name and (not user.name or user.name == 'Guest User'):
            fields['name'] = address.name
        if address.phone and not user.phone:
            fields['phone'] = address.phone
        if (address.street or address.city) and not address.is_placeholder:
            fields['address'] = address

        if not fields:
            return user
        return await store.update_user(user_id, **fields)

    async def claim_guest_account(self, store: Store, token: str,
                                  name: Optional[str] = None) -> User:
        """Promote a guest to a regular account using the guest session token"""
        verified = verify_token(token, GUEST_TOKEN)
        if not verified:
            raise AuthenticationError("Invalid or expired guest session")

        user_id, _ = verified
        user = await store.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        if not user.is_guest:
            raise ValidationError("Account has already been claimed")

        fields: Dict[str, Any] = {'is_guest': False}
        if name:
            fields['name'] = name
        claimed = await store.update_user(user_id, **fields)
        self.logger.info(f"Guest account {user_id} claimed")
        return claimed
