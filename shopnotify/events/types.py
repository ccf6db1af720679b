"""Event type registry: every event type string, grouped by bounded context.

Types follow the pattern ``<domain>.<action>``. Publishers, the processor and
the notification generator all use these constants.
"""


class JobEvents:
    CREATED = "job.created"
    STATUS_CHANGED = "job.status_changed"
    ASSIGNED = "job.assigned"
    COMPLETED = "job.completed"
    CANCELLED = "job.cancelled"


class InvoiceEvents:
    GENERATED = "invoice.generated"
    SENT = "invoice.sent"
    OVERDUE = "invoice.overdue"


class PaymentEvents:
    RECEIVED = "payment.received"
    FAILED = "payment.failed"
    REFUNDED = "payment.refunded"


class SubscriptionEvents:
    CHANGED = "subscription.changed"
    EXPIRING = "subscription.expiring"
    EXPIRED = "subscription.expired"
    RENEWED = "subscription.renewed"


class TenantEvents:
    STATUS_CHANGED = "tenant.status_changed"
    ONBOARDED = "tenant.onboarded"


class InventoryEvents:
    LOW_STOCK = "inventory.low_stock"
    RESTOCKED = "inventory.restocked"


EVENT_CONTEXTS: dict[str, type] = {
    "jobs": JobEvents,
    "invoices": InvoiceEvents,
    "payments": PaymentEvents,
    "subscriptions": SubscriptionEvents,
    "tenants": TenantEvents,
    "inventory": InventoryEvents,
}


def _collect_event_types() -> frozenset[str]:
    found: set[str] = set()
    for group in EVENT_CONTEXTS.values():
        for name, value in vars(group).items():
            if name.isupper() and isinstance(value, str):
                found.add(value)
    return frozenset(found)


ALL_EVENT_TYPES: frozenset[str] = _collect_event_types()


def is_known_event_type(event_type: str) -> bool:
    return event_type in ALL_EVENT_TYPES


class EntityType:
    JOBCARD = "jobcard"
    INVOICE = "invoice"
    PAYMENT = "payment"
    TENANT = "tenant"
    SUBSCRIPTION = "subscription"
    PART = "part"
    CUSTOMER = "customer"
    VEHICLE = "vehicle"
    MECHANIC = "mechanic"


class NotificationCategory:
    SYSTEM = "system"
    BILLING = "billing"
    ALERT = "alert"
    TENANT_ACTIVITY = "tenant_activity"
    JOB_UPDATE = "job_update"
    INVENTORY = "inventory"


class Severity:
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Channel:
    IN_APP = "in_app"
