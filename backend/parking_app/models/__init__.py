from .records import (
    Voucher, UsageRecord, AuditEntry, RequestMeta,
    STATUS_ACTIVE, STATUS_DISABLED, VOUCHER_STATUSES,
    SOURCE_API, SOURCE_MANUAL, USAGE_SOURCES,
    QR_SOURCE_AUTO, QR_SOURCE_MANUAL,
    CREATE, ADMIN_LOGIN, ADMIN_LOGOUT, WEBHOOK_USE, MANUAL_USE,
    ADJUST, UPDATE, DISABLE, DISPLAY, CONFIRM, UPLOAD_QR, AUDIT_TYPES,
)
from .tables import VoucherRow, UsageRow, AuditRow

__all__ = [
    'Voucher', 'UsageRecord', 'AuditEntry', 'RequestMeta',
    'STATUS_ACTIVE', 'STATUS_DISABLED', 'VOUCHER_STATUSES',
    'SOURCE_API', 'SOURCE_MANUAL', 'USAGE_SOURCES',
    'QR_SOURCE_AUTO', 'QR_SOURCE_MANUAL',
    'CREATE', 'ADMIN_LOGIN', 'ADMIN_LOGOUT', 'WEBHOOK_USE', 'MANUAL_USE',
    'ADJUST', 'UPDATE', 'DISABLE', 'DISPLAY', 'CONFIRM', 'UPLOAD_QR', 'AUDIT_TYPES',
    'VoucherRow', 'UsageRow', 'AuditRow',
]
