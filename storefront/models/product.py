from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime, JSON, CheckConstraint, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# Model Product
# A sellable catalog item. Price shown to customers is discount_price when set,
# otherwise original_price; variant options adjust it further.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    description = Column(String)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=True, index=True)

    original_price = Column(Float, CheckConstraint("original_price >= 0"), nullable=False)
    discount_price = Column(Float, nullable=True)

    stock_quantity = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=True)

    thumbnail = Column(String, nullable=True)
    images = Column(JSON, nullable=True)
    featured = Column(Boolean, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    attributes = relationship(
        "ProductAttribute",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductAttribute.display_order",
    )


# A configurable dimension of a product, e.g. "Storage" or "Color"
class ProductAttribute(Base):
    __tablename__ = "product_attributes"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    type = Column(String, default="select") # select / radio / color / size
    is_required = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)

    product = relationship("Product", back_populates="attributes")
    options = relationship(
        "ProductAttributeOption",
        back_populates="attribute",
        cascade="all, delete-orphan",
        order_by="ProductAttributeOption.display_order",
    )


# A selectable value of an attribute with its signed price delta
class ProductAttributeOption(Base):
    __tablename__ = "product_attribute_options"

    id = Column(Integer, primary_key=True, index=True)
    attribute_id = Column(Integer, ForeignKey("product_attributes.id"), nullable=False, index=True)
    value = Column(String, nullable=False)
    label = Column(String, nullable=False)
    price_modifier = Column(Float, nullable=True, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    sku_suffix = Column(String, nullable=True)
    display_order = Column(Integer, default=0)

    attribute = relationship("ProductAttribute", back_populates="options")
