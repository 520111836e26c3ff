from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# Time-boxed campaign; windows are stored as naive UTC
class FlashDeal(Base):
    __tablename__ = "flash_deals"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    banner_image_url = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    products = relationship(
        "FlashDealProduct",
        back_populates="flash_deal",
        cascade="all, delete-orphan",
        order_by="FlashDealProduct.sort_order",
    )


class FlashDealProduct(Base):
    __tablename__ = "flash_deal_products"

    id = Column(Integer, primary_key=True, index=True)
    flash_deal_id = Column(Integer, ForeignKey("flash_deals.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    discount_percentage = Column(Float, nullable=False, default=0)
    flash_price = Column(Float, nullable=True) # explicit price wins over the percentage
    sort_order = Column(Integer, default=0)

    flash_deal = relationship("FlashDeal", back_populates="products")
    product = relationship("Product")
