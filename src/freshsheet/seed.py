"""
Demo data: a handful of suppliers with catalogues, one organization with two
restaurants, their users and some starting inventory. Seeding is idempotent;
rows that already exist (matched by name or email) are left alone.
"""
from typing import Dict, List, Optional

from sqlmodel import Session, select

from freshsheet.logging import logger
from freshsheet.models.catalog import ProductCategory, Supplier, SupplierProduct
from freshsheet.models.core import Organization, Restaurant, User, UserRole
from freshsheet.models.inventory import InventoryItem

SUPPLIERS = [
    {
        "name": "Fresh Farms Co.",
        "description": "Organic produce sourced directly from local California farms.",
        "email": "orders@freshfarms.co",
        "phone": "(555) 123-4567",
        "city": "Sacramento",
        "state": "CA",
        "minimum_order": 150,
        "delivery_fee": 25,
        "lead_time_days": 1,
        "rating": 4.8,
        "review_count": 127,
    },
    {
        "name": "Valley Produce Distributors",
        "description": "Full-service produce distributor serving restaurants across the Bay Area.",
        "email": "info@valleyproduce.net",
        "phone": "(555) 345-6789",
        "city": "Fresno",
        "state": "CA",
        "minimum_order": 100,
        "delivery_fee": 20,
        "lead_time_days": 2,
        "rating": 4.5,
        "review_count": 203,
    },
    {
        "name": "Ocean Harvest Seafood",
        "description": "Daily catches from sustainable fisheries, delivered same-day.",
        "email": "sales@oceanharvest.com",
        "phone": "(555) 234-5678",
        "city": "San Francisco",
        "state": "CA",
        "minimum_order": 200,
        "delivery_fee": 35,
        "lead_time_days": 1,
        "rating": 4.9,
        "review_count": 89,
    },
    {
        "name": "Premium Meats & Poultry",
        "description": "USDA Prime and Choice cuts, heritage poultry and specialty meats.",
        "email": "orders@premiummeats.com",
        "phone": "(555) 456-7890",
        "city": "Oakland",
        "state": "CA",
        "minimum_order": 250,
        "delivery_fee": 30,
        "lead_time_days": 1,
        "rating": 4.7,
        "review_count": 156,
    },
    {
        "name": "Dairy Direct",
        "description": "Milk, cream, cheeses, butter and yogurt from local dairies.",
        "email": "hello@dairydirect.com",
        "phone": "(555) 567-8901",
        "city": "Petaluma",
        "state": "CA",
        "minimum_order": 75,
        "delivery_fee": 15,
        "lead_time_days": 1,
        "rating": 4.6,
        "review_count": 98,
    },
]

# (name, category, price, unit) keyed by supplier email
PRODUCTS: Dict[str, List[tuple]] = {
    "orders@freshfarms.co": [
        ("Organic Mixed Greens", ProductCategory.PRODUCE, 4.99, "POUND"),
        ("Heirloom Tomatoes", ProductCategory.PRODUCE, 5.99, "POUND"),
        ("Fresh Basil", ProductCategory.PRODUCE, 2.99, "BUNCH"),
        ("Organic Carrots", ProductCategory.PRODUCE, 3.49, "POUND"),
        ("Garlic", ProductCategory.PRODUCE, 4.99, "POUND"),
        ("Lemons", ProductCategory.PRODUCE, 0.50, "EACH"),
    ],
    "info@valleyproduce.net": [
        ("Roma Tomatoes", ProductCategory.PRODUCE, 3.99, "POUND"),
        ("Yellow Onions", ProductCategory.PRODUCE, 1.49, "POUND"),
        ("Garlic", ProductCategory.PRODUCE, 4.49, "POUND"),
        ("Lemons", ProductCategory.PRODUCE, 0.45, "EACH"),
        ("Broccoli", ProductCategory.PRODUCE, 2.99, "POUND"),
    ],
    "sales@oceanharvest.com": [
        ("Atlantic Salmon Fillet", ProductCategory.SEAFOOD, 14.99, "POUND"),
        ("Jumbo Shrimp", ProductCategory.SEAFOOD, 16.99, "POUND"),
        ("Fresh Cod", ProductCategory.SEAFOOD, 12.99, "POUND"),
    ],
    "orders@premiummeats.com": [
        ("USDA Prime Ribeye", ProductCategory.MEAT, 28.99, "POUND"),
        ("Chicken Breast", ProductCategory.MEAT, 6.99, "POUND"),
        ("Ground Beef 80/20", ProductCategory.MEAT, 7.99, "POUND"),
    ],
    "hello@dairydirect.com": [
        ("Whole Milk", ProductCategory.DAIRY, 4.49, "GALLON"),
        ("Heavy Cream", ProductCategory.DAIRY, 6.99, "QUART"),
        ("Unsalted Butter", ProductCategory.DAIRY, 5.49, "POUND"),
    ],
}

ORGANIZATION = "Harbor Hospitality Group"

RESTAURANTS = [
    {"name": "The Harbor Kitchen", "city": "San Francisco", "state": "CA"},
    {"name": "Harbor Kitchen Oakland", "city": "Oakland", "state": "CA"},
]

USERS = [
    {"email": "owner@harborkitchen.com", "first_name": "Sam", "role": UserRole.ORG_ADMIN, "restaurant": 0},
    {"email": "chef@harborkitchen.com", "first_name": "Alex", "role": UserRole.STAFF, "restaurant": 0},
    {"email": "manager@harborkitchen-oak.com", "first_name": "Jordan", "role": UserRole.OWNER, "restaurant": 1},
]

# (product name, supplier email, quantity, par level) per restaurant index
INVENTORY = {
    0: [
        ("Heirloom Tomatoes", "orders@freshfarms.co", 4, 10),
        ("Garlic", "orders@freshfarms.co", 3, 2),
        ("Atlantic Salmon Fillet", "sales@oceanharvest.com", 12, 8),
        ("Chicken Breast", "orders@premiummeats.com", 5, 15),
        ("Whole Milk", "hello@dairydirect.com", 6, 4),
    ],
    1: [
        ("Roma Tomatoes", "info@valleyproduce.net", 20, 12),
        ("Yellow Onions", "info@valleyproduce.net", 2, 10),
        ("Ground Beef 80/20", "orders@premiummeats.com", 18, 10),
    ],
}


def _get_or_create_supplier(session: Session, data: dict) -> Supplier:
    supplier = session.exec(select(Supplier).where(Supplier.email == data["email"])).first()
    if supplier:
        return supplier
    supplier = Supplier(**data)
    session.add(supplier)
    session.flush()
    logger.info(f"Created supplier: {supplier.name}")
    return supplier


def _find_product(session: Session, supplier_id: int, name: str) -> Optional[SupplierProduct]:
    return session.exec(
        select(SupplierProduct).where(SupplierProduct.supplier_id == supplier_id, SupplierProduct.name == name)
    ).first()


def seed_demo_data(session: Session) -> Dict[str, int]:
    """Insert the demo dataset; returns how many rows of each kind were created."""
    created = {"suppliers": 0, "products": 0, "restaurants": 0, "users": 0, "inventory": 0}

    suppliers: Dict[str, Supplier] = {}
    for data in SUPPLIERS:
        before = session.exec(select(Supplier).where(Supplier.email == data["email"])).first()
        suppliers[data["email"]] = _get_or_create_supplier(session, data)
        created["suppliers"] += 0 if before else 1

    products: Dict[tuple, SupplierProduct] = {}
    for email, rows in PRODUCTS.items():
        supplier = suppliers[email]
        for name, category, price, unit in rows:
            product = _find_product(session, supplier.id, name)
            if product is None:
                product = SupplierProduct(supplier_id=supplier.id, name=name, category=category, price=price, unit=unit)
                session.add(product)
                session.flush()
                created["products"] += 1
            products[(name, email)] = product

    org = session.exec(select(Organization).where(Organization.name == ORGANIZATION)).first()
    if org is None:
        org = Organization(name=ORGANIZATION)
        session.add(org)
        session.flush()

    restaurants: List[Restaurant] = []
    for data in RESTAURANTS:
        restaurant = session.exec(select(Restaurant).where(Restaurant.name == data["name"])).first()
        if restaurant is None:
            restaurant = Restaurant(organization_id=org.id, **data)
            session.add(restaurant)
            session.flush()
            created["restaurants"] += 1
        restaurants.append(restaurant)

    for data in USERS:
        if session.exec(select(User).where(User.email == data["email"])).first():
            continue
        restaurant = restaurants[data["restaurant"]]
        session.add(User(
            email=data["email"],
            first_name=data["first_name"],
            role=data["role"],
            restaurant_id=restaurant.id,
        ))
        created["users"] += 1

    for index, rows in INVENTORY.items():
        restaurant = restaurants[index]
        for name, email, quantity, par in rows:
            exists = session.exec(
                select(InventoryItem).where(InventoryItem.restaurant_id == restaurant.id, InventoryItem.name == name)
            ).first()
            if exists:
                continue
            product = products[(name, email)]
            session.add(InventoryItem(
                restaurant_id=restaurant.id,
                supplier_product_id=product.id,
                name=name,
                category=product.category,
                current_quantity=quantity,
                unit=product.unit,
                par_level=par,
            ))
            created["inventory"] += 1

    session.commit()
    logger.info(f"Seeding complete: {created}")
    return created
