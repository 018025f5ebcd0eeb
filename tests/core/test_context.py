import pytest
from httpx import AsyncClient

from outlet_erp.core.context import ContextRole, OperationContext
from outlet_erp.core.context.jwt import context_from_token, create_access_token
from outlet_erp.core.exceptions import AuthenticationError, AuthorizationError


class TestOperationContext:
    """Tests for caller identity and outlet targeting."""

    def test_token_round_trip(self):
        ctx = context_from_token(create_access_token("u-42", "OUT01", "manager"))

        assert ctx.user_id == "u-42"
        assert ctx.outlet_code == "OUT01"
        assert ctx.role == ContextRole.MANAGER
        assert ctx.home_outlet_code == "OUT01"

    def test_invalid_token(self):
        with pytest.raises(AuthenticationError):
            context_from_token("not-a-token")

    def test_unknown_role(self):
        with pytest.raises(AuthenticationError):
            context_from_token(create_access_token("u-1", "OUT01", "janitor"))

    def test_own_outlet_allowed(self):
        ctx = OperationContext(outlet_code="OUT01", user_id="u-1", home_outlet_code="OUT01")
        assert ctx.for_outlet("OUT01").outlet_code == "OUT01"

    def test_other_outlet_forbidden(self):
        ctx = OperationContext(outlet_code="OUT01", user_id="u-1", home_outlet_code="OUT01")
        with pytest.raises(AuthorizationError):
            ctx.for_outlet("OUT02")

    def test_holding_outlet_may_target_any_outlet(self):
        """Users of the holding outlet act on behalf of every outlet."""
        ctx = OperationContext(outlet_code="111", user_id="u-1", home_outlet_code="111")
        target = ctx.for_outlet("OUT02")

        assert target.outlet_code == "OUT02"
        assert target.home_outlet_code == "111"

    def test_holding_role_may_target_any_outlet(self):
        ctx = OperationContext(outlet_code="OUT01", user_id="u-1", role=ContextRole.HOLDING)
        assert ctx.for_outlet("OUT02").outlet_code == "OUT02"


class TestApiAuthentication:
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/outlets/OUT01/inventory/balances")

        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_malformed_header(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/outlets/OUT01/inventory/balances", headers={"Authorization": "Token abc"}
        )
        assert response.status_code == 401

    async def test_other_outlet_is_forbidden(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/outlets/OUT02/inventory/balances", headers=auth_headers("OUT01")
        )
        assert response.status_code == 403

    async def test_holding_user_reads_other_outlet(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/outlets/OUT02/inventory/balances", headers=auth_headers("111")
        )

        assert response.status_code == 200
        assert response.json()["data"]["items"] == []

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}
