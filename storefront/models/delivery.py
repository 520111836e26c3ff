from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, func
from storefront.database import Base

class DeliveryOption(Base):
    __tablename__ = "delivery_options"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    price = Column(Float, nullable=False, default=0)
    type = Column(String, nullable=False, default="delivery") # delivery / pickup
    estimated_days = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
