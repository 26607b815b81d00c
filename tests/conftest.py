from types import SimpleNamespace

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import freshsheet.models  # noqa: F401
from freshsheet.agent.types import ToolCallContext
from freshsheet.models.catalog import ProductCategory, Supplier, SupplierProduct
from freshsheet.models.core import Organization, Restaurant, User, UserRole
from freshsheet.models.inventory import InventoryItem


@pytest.fixture(name="engine")
def engine_fixture():
    # One shared connection so loop worker threads see the same in-memory database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture
def world(session):
    """Two restaurants in one organization, two suppliers and some stock."""
    org = Organization(name="Harbor Group")
    session.add(org)
    session.commit()

    harbor = Restaurant(organization_id=org.id, name="Harbor Kitchen", city="San Francisco", state="CA")
    oakland = Restaurant(organization_id=org.id, name="Harbor Oakland", city="Oakland", state="CA")
    session.add(harbor)
    session.add(oakland)
    session.commit()

    admin = User(email="owner@harbor.test", first_name="Sam", role=UserRole.ORG_ADMIN, restaurant_id=harbor.id)
    staff = User(email="chef@harbor.test", first_name="Alex", role=UserRole.STAFF, restaurant_id=harbor.id)
    homeless = User(email="nobody@harbor.test", first_name="Lee", role=UserRole.STAFF)
    session.add(admin)
    session.add(staff)
    session.add(homeless)

    farms = Supplier(name="Fresh Farms Co.", email="orders@freshfarms.co", city="Sacramento", state="CA",
                     minimum_order=150, delivery_fee=25.0, lead_time_days=1, rating=4.8, review_count=127)
    valley = Supplier(name="Valley Produce", email="info@valleyproduce.net", city="Fresno", state="CA",
                      minimum_order=100, delivery_fee=20.0, lead_time_days=2, rating=4.5, review_count=203)
    session.add(farms)
    session.add(valley)
    session.commit()

    heirloom = SupplierProduct(supplier_id=farms.id, name="Heirloom Tomatoes", category=ProductCategory.PRODUCE,
                               price=5.99, unit="POUND")
    garlic_farms = SupplierProduct(supplier_id=farms.id, name="Garlic", category=ProductCategory.PRODUCE,
                                   price=4.99, unit="POUND")
    roma = SupplierProduct(supplier_id=valley.id, name="Roma Tomatoes", category=ProductCategory.PRODUCE,
                           price=3.99, unit="POUND")
    garlic_valley = SupplierProduct(supplier_id=valley.id, name="Garlic", category=ProductCategory.PRODUCE,
                                    price=4.49, unit="POUND", in_stock=False)
    for p in (heirloom, garlic_farms, roma, garlic_valley):
        session.add(p)
    session.commit()

    tomatoes_stock = InventoryItem(restaurant_id=harbor.id, supplier_product_id=heirloom.id, name="Heirloom Tomatoes",
                                   category=ProductCategory.PRODUCE, current_quantity=4, unit="POUND", par_level=10)
    garlic_stock = InventoryItem(restaurant_id=harbor.id, supplier_product_id=garlic_farms.id, name="Garlic",
                                 category=ProductCategory.PRODUCE, current_quantity=3, unit="POUND", par_level=2)
    powder_stock = InventoryItem(restaurant_id=harbor.id, name="Garlic Powder",
                                 category=ProductCategory.DRY_GOODS, current_quantity=1, unit="POUND")
    oakland_stock = InventoryItem(restaurant_id=oakland.id, supplier_product_id=roma.id, name="Roma Tomatoes",
                                  category=ProductCategory.PRODUCE, current_quantity=1, unit="POUND", par_level=12)
    for i in (tomatoes_stock, garlic_stock, powder_stock, oakland_stock):
        session.add(i)
    session.commit()

    return SimpleNamespace(
        org=org,
        harbor=harbor,
        oakland=oakland,
        admin=admin,
        staff=staff,
        homeless=homeless,
        farms=farms,
        valley=valley,
        heirloom=heirloom,
        garlic_farms=garlic_farms,
        roma=roma,
        garlic_valley=garlic_valley,
        tomatoes_stock=tomatoes_stock,
        garlic_stock=garlic_stock,
        oakland_stock=oakland_stock,
        staff_ctx=ToolCallContext(user_id=staff.id, restaurant_id=harbor.id, organization_id=org.id,
                                  role=UserRole.STAFF),
        admin_ctx=ToolCallContext(user_id=admin.id, restaurant_id=harbor.id, organization_id=org.id,
                                  role=UserRole.ORG_ADMIN),
    )
