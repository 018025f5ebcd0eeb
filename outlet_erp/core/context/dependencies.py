from typing import Annotated

from fastapi import Depends, Header, Path

from outlet_erp.core.context.jwt import context_from_token
from outlet_erp.core.context.models import OperationContext
from outlet_erp.core.exceptions import AuthenticationError


async def get_caller_context(
    authorization: Annotated[str | None, Header()] = None,
) -> OperationContext:
    """Resolve the caller identity from the bearer token."""
    if not authorization:
        raise AuthenticationError("Authorization header required")

    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    return context_from_token(authorization.replace("Bearer ", "", 1))


async def get_outlet_context(
    outlet_code: Annotated[str, Path(min_length=1, max_length=20)],
    caller: OperationContext = Depends(get_caller_context),
) -> OperationContext:
    """Context targeting the outlet in the URL path; checks the caller may act there."""
    return caller.for_outlet(outlet_code)


OutletContext = Annotated[OperationContext, Depends(get_outlet_context)]
