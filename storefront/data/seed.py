# storefront/data/seed.py
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import (
    DiscountModel,
    ProductImageModel,
    ProductModel,
    ProductVariantModel,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    {
        "slug": "lop-65-keyboard",
        "name": "LOP 65 Keyboard",
        "category": "keyboard",
        "description": "Compact 65% hot-swap mechanical keyboard with aluminium case.",
        "features": ["Hot-swap sockets", "Gasket mount", "USB-C"],
        "specifications": {"layout": "65%", "connection": "USB-C"},
        "variants": [
            ("LOP65-BLK", "Black", 14900, 12, {"color": "black"}),
            ("LOP65-SLV", "Silver", 15900, 3, {"color": "silver"}),
        ],
    },
    {
        "slug": "lop-tkl-keyboard",
        "name": "LOP TKL Keyboard",
        "category": "keyboard",
        "description": "Tenkeyless board with south-facing RGB.",
        "features": ["Hot-swap sockets", "South-facing LEDs"],
        "specifications": {"layout": "TKL", "connection": "USB-C"},
        "variants": [("LOPTKL-GRY", "Grey", 17900, 8, {"color": "grey"})],
    },
    {
        "slug": "linear-red-switch",
        "name": "Linear Red Switch",
        "category": "switch",
        "description": "Smooth linear switch, 45g actuation.",
        "features": ["Factory lubed"],
        "specifications": {"type": "linear", "actuation": "45g"},
        "variants": [("SW-RED-1", "Single", 60, 2000, {"pack": 1})],
    },
    {
        "slug": "tactile-brown-switch",
        "name": "Tactile Brown Switch",
        "category": "switch",
        "description": "Light tactile bump, 55g actuation.",
        "features": [],
        "specifications": {"type": "tactile", "actuation": "55g"},
        "variants": [("SW-BRN-1", "Single", 65, 1500, {"pack": 1})],
    },
    {
        "slug": "pbt-keycap-set",
        "name": "PBT Keycap Set",
        "category": "keycap",
        "description": "Double-shot PBT keycaps, cherry profile.",
        "features": ["Double-shot", "Cherry profile"],
        "specifications": {"material": "PBT"},
        "variants": [
            ("KC-PBT-WHT", "White", 5900, 40, {"color": "white"}),
            ("KC-PBT-NAV", "Navy", 5900, 0, {"color": "navy"}),
        ],
    },
    {
        "slug": "switch-puller",
        "name": "Switch Puller",
        "category": "accessory",
        "description": "Stainless steel switch puller.",
        "features": [],
        "specifications": {},
        "is_accessory": True,
        "variants": [("ACC-PULL", "Standard", 800, 100, {})],
    },
]

DISCOUNTS = [
    {"code": "WELCOME10", "description": "10% off your first order", "type": "percentage", "value": 10},
    {"code": "FIVEOFF", "description": "$5 off orders over $50", "type": "fixed", "value": 500, "min_spend": 5000},
    {"code": "FREESHIP", "description": "Free shipping", "type": "shipping", "value": 0},
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # tylko gdy baza pusta
        if db.query(ProductModel).first():
            logger.info("Database already seeded")
            return

        for data in PRODUCTS:
            product = ProductModel(
                slug=data["slug"],
                name=data["name"],
                category=data["category"],
                description=data["description"],
                features=data["features"],
                specifications=data["specifications"],
                is_accessory=data.get("is_accessory", False),
            )
            db.add(product)
            db.flush()

            for sku, name, price, stock, attributes in data["variants"]:
                db.add(
                    ProductVariantModel(
                        product_id=product.id,
                        sku=sku,
                        name=name,
                        price=price,
                        stock_quantity=stock,
                        attributes=attributes,
                    )
                )
            db.add(
                ProductImageModel(
                    product_id=product.id,
                    url=f"/images/products/{product.slug}.webp",
                    alt=product.name,
                    position=0,
                )
            )

        for data in DISCOUNTS:
            db.add(DiscountModel(**data))

        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products and {len(DISCOUNTS)} discounts")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
