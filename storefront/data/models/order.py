from sqlalchemy import Column, Integer, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime, new_id, utcnow

ORDER_STATUSES = (
    "pending_payment",
    "payment_failed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    cart_id = Column(String(36), nullable=True)

    status = Column(String(20), nullable=False, default="pending_payment", index=True)
    email = Column(String(255), nullable=False, index=True)

    subtotal = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False, default=0)
    shipping_amount = Column(Integer, nullable=False, default=0)
    tax_amount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    shipping_method = Column(String(20), nullable=False, default="standard")
    payment_intent_id = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    items = relationship("OrderItemModel", cascade="all, delete-orphan", lazy="selectin")
    addresses = relationship("OrderAddressModel", cascade="all, delete-orphan", lazy="selectin")
    status_history = relationship(
        "OrderStatusHistoryModel",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistoryModel.created_at",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False)
    variant_id = Column(String(36), nullable=False)

    name = Column(String(255), nullable=False)
    variant_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    composites = Column(JSON, nullable=False, default=list)


class OrderAddressModel(Base):
    __tablename__ = "order_addresses"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="shipping")

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address1 = Column(String(255), nullable=False)
    address2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False, default="")
    postal_code = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)


class OrderStatusHistoryModel(Base):
    __tablename__ = "order_status_history"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


def format_order_number(order_id: str, created_at) -> str:
    """ON-YYYYMMDD-XXXX, XXXX = pierwsze 4 znaki id bez myslnikow."""
    return f"ON-{created_at.strftime('%Y%m%d')}-{order_id.replace('-', '')[:4].upper()}"
