"""Admin role verification for privileged functions."""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
import httpx
from sqlalchemy.orm import sessionmaker
from storefront.data.database.cache_models import UserRole
from storefront.utils.llm import run_db_operation_with_timeout

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@dataclass
class AdminCheck:
    is_admin: bool
    reason: Optional[str] = None


class TokenResolver(Protocol):
    async def resolve_user_id(self, token: str) -> Optional[str]:
        """User id for a valid token, None otherwise."""
        ...


class SupabaseTokenResolver:
    """Resolve an access token through the Supabase auth endpoint."""

    def __init__(self, client: httpx.AsyncClient, supabase_url: str, anon_key: str):
        self.client = client
        self.url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self.anon_key = anon_key

    async def resolve_user_id(self, token: str) -> Optional[str]:
        try:
            response = await self.client.get(
                self.url,
                headers={"Authorization": f"Bearer {token}", "apikey": self.anon_key},
            )
        except httpx.HTTPError as e:
            logger.error("Auth endpoint unreachable: %s", e)
            return None
        if not response.is_success:
            return None
        return response.json().get("id")


def has_role(session_factory: sessionmaker, user_id: str, role: str) -> bool:
    db = session_factory()
    try:
        return db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role == role,
        ).first() is not None
    finally:
        db.close()


async def verify_admin(
    authorization: Optional[str],
    resolver: TokenResolver,
    session_factory: sessionmaker,
) -> AdminCheck:
    """
    Check that a bearer credential belongs to an admin.

    Re-evaluated on every call; nothing is cached between requests.

    Args:
        authorization: Raw Authorization header value
        resolver: Token-to-user resolver
        session_factory: Session factory for the roles table

    Returns:
        AdminCheck with a rejection reason when not an admin
    """
    if not authorization or not authorization.startswith("Bearer "):
        return AdminCheck(False, "Authorization header required")

    token = authorization[len("Bearer "):].strip()
    user_id = await resolver.resolve_user_id(token) if token else None
    if not user_id:
        return AdminCheck(False, "Invalid or expired token")

    if not await run_db_operation_with_timeout(has_role, session_factory, user_id, ADMIN_ROLE):
        return AdminCheck(False, "Admin access required")

    return AdminCheck(True)
