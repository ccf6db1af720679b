"""Notification generator: maps one event to notification drafts for both audiences.

Pure mapping layer. No I/O, no hidden state: the same event always yields the
same drafts. Dispatch goes through an explicit registry keyed by event type;
an event type with no registered handler yields an empty result, which the
processor treats as a successful outcome.
"""

from dataclasses import replace
from typing import Any, Callable

from shopnotify.events.models import Event
from shopnotify.events.types import (
    EntityType,
    InventoryEvents,
    InvoiceEvents,
    JobEvents,
    NotificationCategory,
    PaymentEvents,
    Severity,
    SubscriptionEvents,
    TenantEvents,
)
from shopnotify.notifications.models import (
    GeneratedNotifications,
    PlatformNotificationDraft,
    TenantNotificationDraft,
)

Handler = Callable[[Event], GeneratedNotifications]

_HANDLERS: dict[str, Handler] = {}

EMPTY = GeneratedNotifications()


def handles(event_type: str) -> Callable[[Handler], Handler]:
    """Register a handler for one event type. Each type may have one handler."""

    def decorator(func: Handler) -> Handler:
        if event_type in _HANDLERS:
            raise ValueError(f"Handler already registered for {event_type!r}")
        _HANDLERS[event_type] = func
        return func

    return decorator


def handler_for(event_type: str) -> Handler | None:
    return _HANDLERS.get(event_type)


def registered_event_types() -> frozenset[str]:
    return frozenset(_HANDLERS)


def generate_notifications(event: Event) -> GeneratedNotifications:
    """Build drafts for ``event``. Every draft carries the source event id and a
    stable dedup key ``<event id>:<audience>:<ordinal>``."""
    handler = handler_for(event.event_type)
    if handler is None:
        return EMPTY
    generated = handler(event)
    return GeneratedNotifications(
        platform=tuple(
            replace(d, source_event_id=event.id, dedup_key=f"{event.id}:platform:{i}")
            for i, d in enumerate(generated.platform)
        ),
        tenant=tuple(
            replace(d, source_event_id=event.id, dedup_key=f"{event.id}:tenant:{i}")
            for i, d in enumerate(generated.tenant)
        ),
    )


def _field(payload: dict[str, Any], key: str, default: Any = "") -> Any:
    """Payload value, or ``default`` when missing or null."""
    value = payload.get(key)
    return default if value is None else value


# --- Jobs ---


@handles(JobEvents.CREATED)
def _job_created(event: Event) -> GeneratedNotifications:
    p = event.payload
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                user_id=event.actor_id,
                jobcard_id=event.entity_id,
                title="New Job Card Created",
                message=(
                    f"Job {_field(p, 'job_number')} has been created and is now "
                    f'in "Received" status.'
                ),
                category=NotificationCategory.JOB_UPDATE,
                severity=Severity.INFO,
                entity_type=EntityType.JOBCARD,
                entity_id=event.entity_id,
            ),
        )
    )


@handles(JobEvents.STATUS_CHANGED)
def _job_status_changed(event: Event) -> GeneratedNotifications:
    p = event.payload
    new_status = _field(p, "new_status")
    severity = Severity.WARNING if new_status == "cancelled" else Severity.INFO
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                jobcard_id=event.entity_id,
                title="Job Status Updated",
                message=(
                    f"Job {_field(p, 'job_number')} moved from "
                    f'"{_field(p, "old_status")}" to "{new_status}".'
                ),
                category=NotificationCategory.JOB_UPDATE,
                severity=severity,
                entity_type=EntityType.JOBCARD,
                entity_id=event.entity_id,
            ),
        )
    )


# --- Invoices ---


@handles(InvoiceEvents.GENERATED)
def _invoice_generated(event: Event) -> GeneratedNotifications:
    p = event.payload
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                customer_id=p.get("customer_id"),
                jobcard_id=p.get("jobcard_id"),
                title="Invoice Generated",
                message=(
                    f"Invoice {_field(p, 'invoice_number')} for "
                    f"₹{_field(p, 'total_amount', 0)} has been generated."
                ),
                category=NotificationCategory.BILLING,
                severity=Severity.INFO,
                entity_type=EntityType.INVOICE,
                entity_id=event.entity_id,
            ),
        )
    )


# --- Payments ---


@handles(PaymentEvents.RECEIVED)
def _payment_received(event: Event) -> GeneratedNotifications:
    p = event.payload
    amount = _field(p, "amount", 0)
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                title="Payment Received",
                message=(
                    f"Payment of ₹{amount} received via "
                    f"{_field(p, 'payment_method', 'unknown')}."
                ),
                category=NotificationCategory.BILLING,
                severity=Severity.INFO,
                entity_type=EntityType.PAYMENT,
                entity_id=event.entity_id,
            ),
        ),
        # Revenue tracking for platform operators.
        platform=(
            PlatformNotificationDraft(
                tenant_id=event.tenant_id,
                title="Tenant Payment Received",
                message=f"Payment of ₹{amount} received for tenant {event.tenant_id}.",
                category=NotificationCategory.BILLING,
                severity=Severity.INFO,
                entity_type=EntityType.PAYMENT,
                entity_id=event.entity_id,
            ),
        ),
    )


# --- Subscriptions ---


@handles(SubscriptionEvents.EXPIRING)
def _subscription_expiring(event: Event) -> GeneratedNotifications:
    p = event.payload
    tier = _field(p, "subscription_tier")
    ends = _field(p, "subscription_end", "soon")
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                title="Subscription Expiring Soon",
                message=(
                    f"Your {tier} subscription expires on {ends}. "
                    "Please renew to avoid service interruption."
                ),
                category=NotificationCategory.BILLING,
                severity=Severity.WARNING,
                entity_type=EntityType.TENANT,
                entity_id=event.entity_id,
            ),
        ),
        platform=(
            PlatformNotificationDraft(
                tenant_id=event.tenant_id,
                title="Tenant Subscription Expiring",
                message=(
                    f'Tenant "{_field(p, "tenant_name", event.tenant_id)}" '
                    f"subscription ({tier}) expires on {ends}."
                ),
                category=NotificationCategory.BILLING,
                severity=Severity.WARNING,
                entity_type=EntityType.TENANT,
                entity_id=event.entity_id,
            ),
        ),
    )


@handles(SubscriptionEvents.CHANGED)
def _subscription_changed(event: Event) -> GeneratedNotifications:
    p = event.payload
    return GeneratedNotifications(
        platform=(
            PlatformNotificationDraft(
                tenant_id=event.tenant_id,
                title="Subscription Tier Changed",
                message=(
                    f'Tenant "{_field(p, "tenant_name", event.tenant_id)}" changed from '
                    f"{_field(p, 'old_tier')} to {_field(p, 'new_tier')}."
                ),
                category=NotificationCategory.BILLING,
                severity=Severity.INFO,
                entity_type=EntityType.TENANT,
                entity_id=event.entity_id,
            ),
        )
    )


# --- Tenants ---


@handles(TenantEvents.STATUS_CHANGED)
def _tenant_status_changed(event: Event) -> GeneratedNotifications:
    p = event.payload
    new_status = _field(p, "new_status")
    severity = Severity.CRITICAL if new_status == "suspended" else Severity.INFO
    return GeneratedNotifications(
        platform=(
            PlatformNotificationDraft(
                tenant_id=event.tenant_id,
                title="Tenant Status Changed",
                message=(
                    f'Tenant "{_field(p, "tenant_name", event.tenant_id)}" status changed '
                    f'from "{_field(p, "old_status")}" to "{new_status}".'
                ),
                category=NotificationCategory.TENANT_ACTIVITY,
                severity=severity,
                entity_type=EntityType.TENANT,
                entity_id=event.entity_id,
            ),
        )
    )


# --- Inventory ---


@handles(InventoryEvents.LOW_STOCK)
def _inventory_low_stock(event: Event) -> GeneratedNotifications:
    p = event.payload
    return GeneratedNotifications(
        tenant=(
            TenantNotificationDraft(
                tenant_id=event.tenant_id,
                title="Low Stock Alert",
                message=(
                    f'Part "{_field(p, "part_name")}" (SKU: {_field(p, "sku")}) is running low. '
                    f"Current stock: {_field(p, 'current_stock', 0)}."
                ),
                category=NotificationCategory.INVENTORY,
                severity=Severity.WARNING,
                entity_type=EntityType.PART,
                entity_id=event.entity_id,
            ),
        )
    )
