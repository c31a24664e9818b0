"""Current-user access checks for document operations."""

import logging
from typing import Awaitable, Callable, Literal, Optional

from packages.ingestion.models import UserContext
from packages.utils.errors import UnauthorizedError
from packages.utils.supabase_client import SupabaseRestClient

logger = logging.getLogger(__name__)

# Resolves the caller of the current operation, or None when unauthenticated
CurrentUserLookup = Callable[[], Awaitable[Optional[UserContext]]]

Operation = Literal["read", "write"]


async def verify_access(lookup: CurrentUserLookup, operation: Operation) -> UserContext:
    """
    Verify that the current caller may perform an operation.

    Args:
        lookup: Resolves the current caller
        operation: "read" or "write"

    Returns:
        The caller's context (carries the department used for filtering)

    Raises:
        UnauthorizedError: If there is no caller, or the caller is inactive
    """
    user = await lookup()
    if user is None:
        logger.warning(f"Denied {operation}: no current user")
        raise UnauthorizedError("Unauthorized")
    if not user.is_active:
        logger.warning(f"Denied {operation}: user {user.user_id} inactive")
        raise UnauthorizedError("User not found or inactive")
    return user


def supabase_user_lookup(rest_client: SupabaseRestClient, user_id: str) -> CurrentUserLookup:
    """Build a lookup resolving ``user_id`` against the ``users`` table."""

    async def lookup() -> Optional[UserContext]:
        profile = await rest_client.get_user_profile(user_id)
        if profile is None:
            # Unknown users fail the same way as inactive ones
            return UserContext(user_id=user_id, is_active=False)
        return UserContext(
            user_id=user_id,
            department=profile.get("department"),
            is_active=bool(profile.get("is_active")),
        )

    return lookup
