import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine
from app.api.deps import get_db
from app.main import app as api_app
from app.models import (
    Category,
    Collection,
    ProductCollection,
    Product,
    TaxSettings,
    CategoryTaxRule,
    Campaign,
    CampaignRule,
    CampaignAction,
    CampaignStatus,
    ApplyType,
    DiscountType,
    AppliesTo,
)
from app.schemas.cart import CartLine, CartSnapshot
from app.schemas.campaign import rule_adapter, CampaignActionSpec
from app.services.campaigns import CampaignDefinition

NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture
def engine():
    """In-memory SQLite DB for fast testing."""
    _engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(_engine)
    yield _engine
    SQLModel.metadata.drop_all(_engine)


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    """API client bound to the in-memory DB."""
    def override_get_db():
        with Session(engine) as session:
            yield session

    api_app.dependency_overrides[get_db] = override_get_db
    with TestClient(api_app) as test_client:
        yield test_client
    api_app.dependency_overrides.clear()


@pytest.fixture
def tax_settings():
    return TaxSettings(
        id=1,
        tax_enabled=True,
        price_includes_tax=True,
        default_gst_rate=Decimal("18"),
        store_state="Tamil Nadu",
        gstin=None,
    )


@pytest.fixture
def catalog(db):
    """Two categories, a collection and three products."""
    shirts = Category(name="Shirts", slug="shirts")
    socks = Category(name="Socks", slug="socks")
    summer = Collection(name="Summer", slug="summer")
    db.add_all([shirts, socks, summer])
    db.commit()

    oxford = Product(name="Oxford Shirt", slug="oxford", price=Decimal("1000"), category_id=shirts.id)
    linen = Product(name="Linen Shirt", slug="linen", price=Decimal("1500"), category_id=shirts.id)
    ankle = Product(name="Ankle Socks", slug="ankle", price=Decimal("100"), category_id=socks.id)
    db.add_all([oxford, linen, ankle])
    db.commit()

    db.add(ProductCollection(product_id=linen.id, collection_id=summer.id))
    db.add(CategoryTaxRule(category_id=socks.id, gst_rate=Decimal("5")))
    db.commit()

    return {
        "shirts": shirts.id,
        "socks": socks.id,
        "summer": summer.id,
        "oxford": oxford.id,
        "linen": linen.id,
        "ankle": ankle.id,
    }


def line(product_id=1, price="100", quantity=1, **kwargs) -> CartLine:
    return CartLine(product_id=product_id, price=Decimal(price), quantity=quantity, **kwargs)


def cart(*lines) -> CartSnapshot:
    return CartSnapshot(items=list(lines))


def rule(rule_type, operator=None, **value):
    payload = {"rule_type": rule_type, "value": value}
    if operator:
        payload["operator"] = operator
    return rule_adapter.validate_python(payload)


def action(discount_type="flat", discount_value="100", max_discount=None, applies_to="cart"):
    return CampaignActionSpec(
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        max_discount=Decimal(max_discount) if max_discount is not None else None,
        applies_to=applies_to,
    )


def campaign(
    id=1,
    priority=0,
    rules=None,
    actions=None,
    status=CampaignStatus.ACTIVE,
    start_at=None,
    end_at="default",
    created_at=None,
    apply_type=ApplyType.AUTO,
    name=None,
) -> CampaignDefinition:
    return CampaignDefinition(
        id=id,
        name=name or f"Campaign {id}",
        status=status,
        priority=priority,
        start_at=start_at or NOW - timedelta(days=1),
        end_at=NOW + timedelta(days=1) if end_at == "default" else end_at,
        apply_type=apply_type,
        created_at=created_at or NOW - timedelta(days=10),
        rules=rules if rules is not None else [],
        actions=actions if actions is not None else [action()],
    )


def stored_campaign(db, name, priority=0, rules=(), actions=(), status=CampaignStatus.ACTIVE,
                    start_at=None, end_at=None) -> Campaign:
    """Persist a campaign with raw rule rows (values are not validated)."""
    row = Campaign(
        name=name,
        status=status,
        priority=priority,
        start_at=start_at or datetime.utcnow() - timedelta(days=1),
        end_at=end_at,
    )
    row.rules = [CampaignRule(rule_type=t, operator=op, value=v) for t, op, v in rules]
    row.actions = [
        CampaignAction(
            discount_type=DiscountType(dt),
            discount_value=Decimal(dv),
            max_discount=Decimal(md) if md is not None else None,
            applies_to=AppliesTo.CART,
        )
        for dt, dv, md in actions
    ]
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def iso(delta_days):
    return (datetime.utcnow() + timedelta(days=delta_days)).isoformat()


def create_campaign(client, name, priority=0, rules=None, actions=None, status="active",
                    start_days=-1, end_days=7):
    """Create a campaign through the admin API"""
    resp = client.post("/api/admin/campaigns/", json={
        "name": name,
        "status": status,
        "priority": priority,
        "start_at": iso(start_days),
        "end_at": iso(end_days) if end_days is not None else None,
        "rules": rules or [],
        "actions": actions if actions is not None else [{"discount_type": "flat", "discount_value": "100"}],
    })
    assert resp.status_code == 201, resp.text
    return resp.json()
