from sqlalchemy import Boolean, Column, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.data.types import UTCDateTime, new_id, utcnow


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False, index=True)
    features = Column(JSON, nullable=False, default=list)
    specifications = Column(JSON, nullable=False, default=dict)
    is_accessory = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    sku = Column(String(100), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    attributes = Column(JSON, nullable=False, default=dict)

    product = relationship("ProductModel")


class ProductImageModel(Base):
    __tablename__ = "product_images"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    alt = Column(String(255), nullable=False, default="")
    position = Column(Integer, nullable=False, default=0)


LOW_STOCK_THRESHOLD = 5


def stock_status(stock_quantity: int) -> str:
    if stock_quantity <= 0:
        return "out_of_stock"
    if stock_quantity < LOW_STOCK_THRESHOLD:
        return "low_stock"
    return "in_stock"
