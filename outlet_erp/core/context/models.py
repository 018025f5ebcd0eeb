from dataclasses import dataclass
from enum import StrEnum

from outlet_erp.core.config import settings
from outlet_erp.core.exceptions import AuthorizationError


class ContextRole(StrEnum):
    """Caller roles. Only HOLDING changes which outlets may be targeted."""

    HOLDING = "holding"
    MANAGER = "manager"
    STAFF = "staff"


@dataclass(frozen=True)
class OperationContext:
    """Who is calling and on behalf of which outlet."""

    outlet_code: str
    user_id: str
    role: ContextRole = ContextRole.STAFF
    home_outlet_code: str | None = None

    @property
    def is_holding(self) -> bool:
        return self.role == ContextRole.HOLDING or self.home_outlet_code == settings.holding_outlet_code

    def for_outlet(self, outlet_code: str) -> "OperationContext":
        """Return a context targeting another outlet, if the caller may act there."""
        home = self.home_outlet_code or self.outlet_code
        if outlet_code != home and not self.is_holding:
            raise AuthorizationError(f"Not allowed to operate on outlet {outlet_code}")
        return OperationContext(
            outlet_code=outlet_code,
            user_id=self.user_id,
            role=self.role,
            home_outlet_code=home,
        )
