from sqlalchemy import Boolean, Column, Integer, String

from storefront.data.database import Base
from storefront.data.types import UTCDateTime, new_id, utcnow

DISCOUNT_TYPES = ("percentage", "fixed", "shipping")


class DiscountModel(Base):
    __tablename__ = "discounts"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)

    type = Column(String(20), nullable=False)
    # percentage: 10 = 10%, fixed: kwota w centach
    value = Column(Integer, nullable=False)
    min_spend = Column(Integer, nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)

    valid_from = Column(UTCDateTime, nullable=False, default=utcnow)
    valid_until = Column(UTCDateTime, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
