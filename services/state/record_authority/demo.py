"""Demo dataset seeding through the Record Authority public API."""

from __future__ import annotations

from typing import Any

from packages.docstore_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    failure,
    success,
)
from packages.docstore_shared.errors import codes, validation_error
from packages.docstore_shared.logging import get_logger
from services.state.record_authority.domain import EntityKind
from services.state.record_authority.service import RecordAuthorityService

_LOGGER = get_logger(__name__)

_CLEAR_ORDER = (
    EntityKind.LOG_ENTRY,
    EntityKind.ORDER,
    EntityKind.PRODUCT,
    EntityKind.USER,
)

DEMO_USERS: tuple[dict[str, Any], ...] = (
    {
        "email": "john.doe@example.com",
        "name": "John Doe",
        "profile": {
            "age": 30,
            "gender": "male",
            "occupation": "Software Engineer",
            "interests": ["technology", "gaming", "reading"],
        },
        "preferences": {
            "theme": "dark",
            "language": "en",
            "notifications": {"email": True, "push": False, "sms": True},
        },
        "address": {
            "street": "123 Main St",
            "city": "San Francisco",
            "state": "CA",
            "zipCode": "94101",
            "country": "USA",
        },
    },
    {
        "email": "jane.smith@example.com",
        "name": "Jane Smith",
        "profile": {
            "age": 28,
            "gender": "female",
            "occupation": "Product Manager",
            "interests": ["design", "travel", "photography"],
        },
        "preferences": {
            "theme": "light",
            "language": "en",
            "notifications": {"email": True, "push": True, "sms": False},
        },
        "address": {
            "street": "456 Oak Ave",
            "city": "New York",
            "state": "NY",
            "zipCode": "10001",
            "country": "USA",
        },
    },
)

DEMO_PRODUCTS: tuple[dict[str, Any], ...] = (
    {
        "name": 'MacBook Pro 16"',
        "price": "2499.99",
        "specifications": {
            "cpu": "Apple M2 Max",
            "ram": "32GB",
            "storage": "1TB SSD",
            "display": "16.2-inch Liquid Retina XDR",
            "weight": "2.15 kg",
            "color": "Space Gray",
            "ports": ["3x Thunderbolt 4", "HDMI", "SD card", "MagSafe 3"],
        },
        "metadata": {
            "manufacturer": "Apple",
            "category": "laptop",
            "releaseDate": "2023-01-17",
            "warranty": "1 year",
            "inStock": True,
            "sku": "MBP16-M2MAX-32-1TB",
        },
        "tags": ["laptop", "apple", "premium", "professional"],
    },
    {
        "name": "Samsung Galaxy S23 Ultra",
        "price": "1199.99",
        "specifications": {
            "cpu": "Snapdragon 8 Gen 2",
            "ram": "12GB",
            "storage": "256GB",
            "display": "6.8-inch Dynamic AMOLED 2X",
            "camera": {
                "main": "200MP",
                "ultrawide": "12MP",
                "telephoto": ["10MP", "10MP"],
                "front": "12MP",
            },
            "battery": "5000mAh",
            "color": "Phantom Black",
        },
        "metadata": {
            "manufacturer": "Samsung",
            "category": "smartphone",
            "releaseDate": "2023-02-17",
            "warranty": "1 year",
            "inStock": True,
            "sku": "SGS23U-12-256-PB",
        },
        "tags": ["smartphone", "samsung", "android", "flagship"],
    },
    {
        "name": "Sony WH-1000XM5",
        "price": "399.99",
        "specifications": {
            "type": "Over-ear wireless headphones",
            "driver": "30mm",
            "frequency": "4Hz-40kHz",
            "batteryLife": "30 hours",
            "noiseCancellation": True,
            "bluetooth": "5.2",
            "weight": "250g",
            "color": "Black",
        },
        "metadata": {
            "manufacturer": "Sony",
            "category": "audio",
            "releaseDate": "2022-05-12",
            "warranty": "1 year",
            "inStock": True,
            "sku": "WH1000XM5-B",
        },
        "tags": ["headphones", "sony", "wireless", "noise-cancelling"],
    },
)


def seed_demo_data(
    service: RecordAuthorityService, *, meta: EnvelopeMeta
) -> Envelope[dict[str, int]]:
    """Populate users, products, one shipped order, and sample log entries.

    Refuses with a validation error when users or products already exist.
    Stops at the first failed call and returns its errors.
    """
    for kind in (EntityKind.USER, EntityKind.PRODUCT):
        existing = service.list_records(
            meta=meta.child(kind=EnvelopeKind.QUERY), kind=kind, limit=1
        )
        if not existing.ok:
            return failure(meta=meta, errors=existing.errors)
        if existing.payload is not None and existing.payload.value:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "store already contains data; clear it first",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"kind": str(kind)},
                    )
                ],
            )

    users = []
    for values in DEMO_USERS:
        created = service.create_user(meta=meta.child(), **values)
        if not created.ok or created.payload is None:
            return failure(meta=meta, errors=created.errors)
        users.append(created.payload.value)

    products = []
    for values in DEMO_PRODUCTS:
        created = service.create_product(meta=meta.child(), **values)
        if not created.ok or created.payload is None:
            return failure(meta=meta, errors=created.errors)
        products.append(created.payload.value)

    laptop, _, headphones = products
    order = service.create_order(
        meta=meta.child(),
        user_id=users[0].id,
        total_amount="2899.98",
        items=[
            {
                "productId": laptop.id,
                "name": laptop.name,
                "price": 2499.99,
                "quantity": 1,
            },
            {
                "productId": headphones.id,
                "name": headphones.name,
                "price": 399.99,
                "quantity": 1,
            },
        ],
        shipping_address=DEMO_USERS[0]["address"],
        payment_info={"method": "credit_card", "last4": "1234", "type": "visa"},
    )
    if not order.ok or order.payload is None:
        return failure(meta=meta, errors=order.errors)
    order_id = order.payload.value.id
    for status in ("confirmed", "shipped"):
        transition = service.set_order_status(
            meta=meta.child(), order_id=order_id, status=status
        )
        if not transition.ok:
            return failure(meta=meta, errors=transition.errors)

    logs = (
        {
            "level": "info",
            "message": "User logged in successfully",
            "data": {
                "userId": users[0].id,
                "userAgent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
                "ipAddress": "192.168.1.100",
            },
            "context": {
                "sessionId": "sess_abc123",
                "requestId": "req_xyz789",
                "source": "authentication-service",
            },
        },
        {
            "level": "error",
            "message": "Payment processing failed",
            "data": {
                "orderId": order_id,
                "amount": 2899.98,
                "errorCode": "CARD_DECLINED",
                "retryCount": 2,
            },
            "context": {
                "sessionId": "sess_def456",
                "requestId": "req_abc123",
                "source": "payment-service",
            },
        },
        {
            "level": "warning",
            "message": "High memory usage detected",
            "data": {"memoryUsage": 85.5, "threshold": 80.0, "service": "user-service"},
            "context": {
                "server": "prod-server-01",
                "region": "us-west-2",
                "source": "monitoring-service",
            },
        },
    )
    for values in logs:
        created = service.create_log_entry(meta=meta.child(), **values)
        if not created.ok:
            return failure(meta=meta, errors=created.errors)

    counts = {
        "users": len(users),
        "products": len(products),
        "orders": 1,
        "logs": len(logs),
    }
    _LOGGER.info("demo data seeded: %s", counts)
    return success(meta=meta, payload=counts)


def clear_demo_data(
    service: RecordAuthorityService, *, meta: EnvelopeMeta
) -> Envelope[dict[str, int]]:
    """Delete every record of every kind, dependents first."""
    counts: dict[str, int] = {}
    for kind in _CLEAR_ORDER:
        purged = service.purge_records(meta=meta.child(), kind=kind)
        if not purged.ok or purged.payload is None:
            return failure(meta=meta, errors=purged.errors)
        counts[str(kind)] = purged.payload.value
    return success(meta=meta, payload=counts)
