"""Tests for current-user access checks."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from packages.ingestion.access import supabase_user_lookup, verify_access
from packages.ingestion.models import UserContext
from packages.utils.errors import UnauthorizedError
from tests.fakes import make_user_lookup


@pytest.mark.asyncio
async def test_active_user_is_returned(active_user):
    assert await verify_access(make_user_lookup(active_user), "write") is active_user


@pytest.mark.asyncio
async def test_missing_user():
    with pytest.raises(UnauthorizedError, match="^Unauthorized$"):
        await verify_access(make_user_lookup(None), "read")


@pytest.mark.asyncio
async def test_inactive_user():
    user = UserContext(user_id="user-2", is_active=False)
    with pytest.raises(UnauthorizedError, match="User not found or inactive"):
        await verify_access(make_user_lookup(user), "write")


class TestSupabaseUserLookup:
    @pytest.mark.asyncio
    async def test_profile_found(self):
        rest_client = MagicMock()
        rest_client.get_user_profile = AsyncMock(return_value={"is_active": True, "department": "support"})

        user = await supabase_user_lookup(rest_client, "user-1")()

        assert user == UserContext(user_id="user-1", department="support", is_active=True)
        rest_client.get_user_profile.assert_awaited_once_with("user-1")

    @pytest.mark.asyncio
    async def test_unknown_user_fails_access(self):
        rest_client = MagicMock()
        rest_client.get_user_profile = AsyncMock(return_value=None)

        with pytest.raises(UnauthorizedError, match="User not found or inactive"):
            await verify_access(supabase_user_lookup(rest_client, "ghost"), "read")
