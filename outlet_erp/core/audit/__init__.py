from outlet_erp.core.audit.models import AuditLog
from outlet_erp.core.audit.service import AuditAction, AuditService, list_audit_entries

__all__ = ["AuditLog", "AuditAction", "AuditService", "list_audit_entries"]
