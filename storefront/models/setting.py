from sqlalchemy import Column, String, Text, DateTime, func
from storefront.database import Base

# Key/value store for feature flags (maintenance mode, announcement, backorders...)
class Setting(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    description = Column(String, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
