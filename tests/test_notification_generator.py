"""Tests for the notification generator: registry dispatch, fan-out and severity rules."""

import pytest

from shopnotify.events import Event
from shopnotify.events.types import ALL_EVENT_TYPES
from shopnotify.notifications import (
    generate_notifications,
    handler_for,
    registered_event_types,
)


def _event(event_type: str, payload: dict | None = None, **overrides) -> Event:
    fields = dict(
        id="evt-1",
        idempotency_key="key-1",
        event_type=event_type,
        tenant_id="tenant-1",
        entity_type="payment",
        entity_id="entity-1",
        payload=payload or {},
        created_at=1_700_000_000.0,
    )
    fields.update(overrides)
    return Event(**fields)


class TestFanOut:
    def test_payment_received_notifies_tenant_and_platform(self) -> None:
        result = generate_notifications(
            _event("payment.received", {"amount": 500, "payment_method": "card"})
        )
        assert len(result.tenant) == 1
        assert len(result.platform) == 1
        tenant, platform = result.tenant[0], result.platform[0]
        assert (tenant.category, tenant.severity) == ("billing", "info")
        assert (platform.category, platform.severity) == ("billing", "info")
        assert "500" in tenant.message and "card" in tenant.message
        assert platform.tenant_id == "tenant-1"

    def test_subscription_expiring_warns_both_audiences(self) -> None:
        result = generate_notifications(
            _event(
                "subscription.expiring",
                {
                    "subscription_tier": "pro",
                    "subscription_end": "2025-01-01",
                    "tenant_name": "Acme",
                },
            )
        )
        assert [d.severity for d in result.tenant] == ["warning"]
        assert [d.severity for d in result.platform] == ["warning"]
        assert result.tenant[0].message != result.platform[0].message
        assert "Acme" in result.platform[0].message

    @pytest.mark.parametrize(
        ("new_status", "severity"), [("suspended", "critical"), ("trial", "info")]
    )
    def test_tenant_status_changed_is_platform_only(
        self, new_status: str, severity: str
    ) -> None:
        result = generate_notifications(
            _event("tenant.status_changed", {"old_status": "active", "new_status": new_status})
        )
        assert result.tenant == ()
        assert len(result.platform) == 1
        assert result.platform[0].severity == severity
        assert result.platform[0].category == "tenant_activity"

    @pytest.mark.parametrize(
        ("new_status", "severity"), [("cancelled", "warning"), ("in_progress", "info")]
    )
    def test_job_status_changed_severity(self, new_status: str, severity: str) -> None:
        result = generate_notifications(
            _event("job.status_changed", {"old_status": "received", "new_status": new_status})
        )
        assert result.platform == ()
        assert [d.severity for d in result.tenant] == [severity]

    def test_invoice_generated_is_tenant_only(self) -> None:
        result = generate_notifications(
            _event(
                "invoice.generated",
                {"invoice_number": "INV-7", "customer_id": "c-1", "jobcard_id": "j-1"},
            )
        )
        assert result.platform == ()
        [draft] = result.tenant
        assert draft.severity == "info"
        assert draft.customer_id == "c-1"
        assert draft.jobcard_id == "j-1"

    def test_low_stock_is_tenant_warning(self) -> None:
        result = generate_notifications(_event("inventory.low_stock", {"part_name": "Filter"}))
        assert result.platform == ()
        assert [d.severity for d in result.tenant] == ["warning"]
        assert result.tenant[0].category == "inventory"

    def test_subscription_changed_is_platform_only(self) -> None:
        result = generate_notifications(
            _event("subscription.changed", {"old_tier": "basic", "new_tier": "pro"})
        )
        assert result.tenant == ()
        assert [d.severity for d in result.platform] == ["info"]

    def test_job_created_addresses_actor(self) -> None:
        result = generate_notifications(
            _event("job.created", {"job_number": "J-1"}, actor_id="user-3")
        )
        assert result.tenant[0].user_id == "user-3"
        assert result.tenant[0].jobcard_id == "entity-1"


class TestDefaults:
    def test_missing_fields_are_defaulted(self) -> None:
        result = generate_notifications(_event("payment.received", {}))
        assert "₹0" in result.tenant[0].message
        assert "unknown" in result.tenant[0].message

    def test_null_fields_are_defaulted(self) -> None:
        result = generate_notifications(
            _event("inventory.low_stock", {"current_stock": None, "part_name": None})
        )
        assert "Current stock: 0." in result.tenant[0].message
        assert "None" not in result.tenant[0].message


class TestRegistry:
    def test_unknown_type_yields_nothing(self) -> None:
        assert handler_for("unknown.type") is None
        result = generate_notifications(_event("unknown.type"))
        assert result.platform == ()
        assert result.tenant == ()
        assert result.is_empty

    def test_registered_types_are_known_event_types(self) -> None:
        assert registered_event_types() <= ALL_EVENT_TYPES
        assert "payment.received" in registered_event_types()
        assert "job.assigned" not in registered_event_types()

    def test_drafts_reference_source_event_with_stable_keys(self) -> None:
        result = generate_notifications(_event("payment.received", {"amount": 1}))
        assert result.tenant[0].source_event_id == "evt-1"
        assert result.platform[0].source_event_id == "evt-1"
        assert result.tenant[0].dedup_key == "evt-1:tenant:0"
        assert result.platform[0].dedup_key == "evt-1:platform:0"

    def test_generation_is_deterministic(self) -> None:
        event = _event(
            "subscription.expiring", {"subscription_tier": "pro", "tenant_name": "Acme"}
        )
        assert generate_notifications(event) == generate_notifications(event)
