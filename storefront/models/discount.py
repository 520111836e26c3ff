from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, func
from storefront.database import Base

# Automatic store-wide discount rule, evaluated by the backend API
class Discount(Base):
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    type = Column(String, nullable=False) # percentage / fixed_amount / free_shipping
    value = Column(Float, nullable=False, default=0)
    minimum_amount = Column(Float, nullable=False, default=0)
    maximum_discount = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)
    valid_from = Column(DateTime, server_default=func.now())
    valid_until = Column(DateTime, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    applies_to = Column(String, nullable=False, default="all") # all / products / shipping / total
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# Code a customer types at checkout
class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    type = Column(String, nullable=False) # percentage / fixed_amount / free_delivery
    value = Column(Float, nullable=False, default=0)
    minimum_amount = Column(Float, nullable=False, default=0)
    maximum_discount = Column(Float, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)
    valid_from = Column(DateTime, server_default=func.now())
    valid_until = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
