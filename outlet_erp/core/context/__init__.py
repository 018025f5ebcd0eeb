from outlet_erp.core.context.models import ContextRole, OperationContext

__all__ = ["ContextRole", "OperationContext"]
