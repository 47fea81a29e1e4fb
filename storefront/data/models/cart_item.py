from sqlalchemy import Column, Integer, ForeignKey, JSON, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime, new_id, utcnow


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=new_id)
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = Column(String(36), ForeignKey("product_variants.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    # cena w centach z chwili dodania
    price = Column(Integer, nullable=False)
    # [{"variant_id", "name", "quantity"}] np. switche + keycapy do klawiatury
    composites = Column(JSON, nullable=False, default=list)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    cart = relationship("CartModel", back_populates="items")
    variant = relationship("ProductVariantModel")
