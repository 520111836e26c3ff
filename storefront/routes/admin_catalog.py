# storefront/routes/admin_catalog.py
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.brand import Brand
from storefront.models.category import Category
from storefront.models.product import Product, ProductAttribute, ProductAttributeOption
from storefront.schemas.admin import (
    AttributeIn,
    AttributeOut,
    BrandAdminOut,
    BrandIn,
    CategoryAdminOut,
    CategoryIn,
    ProductAdminOut,
    ProductAdminPage,
    ProductIn,
    ProductPatch,
)
from storefront.utils.audit import write_log
from storefront.utils.helpers import generate_slug
from storefront.utils.tokenJWT import AuthSession, admin_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Catalog"])


def _unique_slug(db: Session, model, slug: str, exclude_id: Optional[int] = None) -> str:
    query = db.query(model).filter(model.slug == slug)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail=f"Slug '{slug}' already exists")
    return slug


def _build_attribute(payload: AttributeIn) -> ProductAttribute:
    attribute = ProductAttribute(
        name=payload.name,
        slug=payload.slug or generate_slug(payload.name),
        type=payload.type,
        is_required=payload.is_required,
        display_order=payload.display_order,
    )
    attribute.options = [
        ProductAttributeOption(
            value=o.value,
            label=o.label or o.value,
            price_modifier=o.price_modifier,
            stock_quantity=o.stock_quantity,
            sku_suffix=o.sku_suffix,
            display_order=o.display_order,
        )
        for o in payload.options
    ]
    return attribute


# --- Categories ---

@router.get("/categories", response_model=List[CategoryAdminOut])
def list_categories(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return db.query(Category).order_by(Category.display_order.asc(), Category.name.asc()).all()


@router.post("/categories", response_model=CategoryAdminOut, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    slug = _unique_slug(db, Category, payload.slug or generate_slug(payload.name))
    if payload.parent_id is not None and not db.get(Category, payload.parent_id):
        raise HTTPException(status_code=404, detail="Parent category not found")

    category = Category(**{**payload.model_dump(), "slug": slug})
    db.add(category)
    db.commit()
    db.refresh(category)

    write_log(db, user_id=session.user_id, action="CATEGORY_CREATE", resource="categories",
              request=request, meta={"category_id": category.id, "slug": slug})
    logger.info(f"Category {slug} created by {session.user_id}")
    return category


@router.put("/categories/{category_id}", response_model=CategoryAdminOut)
def update_category(
    category_id: int,
    payload: CategoryIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if payload.parent_id == category_id:
        raise HTTPException(status_code=400, detail="Category cannot be its own parent")

    slug = _unique_slug(db, Category, payload.slug or generate_slug(payload.name), exclude_id=category_id)
    for field, value in {**payload.model_dump(), "slug": slug}.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)

    write_log(db, user_id=session.user_id, action="CATEGORY_UPDATE", resource="categories",
              request=request, meta={"category_id": category_id})
    return category


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    # Products stay, they just lose their category
    db.query(Product).filter(Product.category_id == category_id).update({Product.category_id: None})
    db.query(Category).filter(Category.parent_id == category_id).update({Category.parent_id: None})
    db.delete(category)
    db.commit()

    write_log(db, user_id=session.user_id, action="CATEGORY_DELETE", resource="categories",
              request=request, meta={"category_id": category_id})
    return {"message": "Category deleted", "id": category_id}


# --- Brands ---

@router.get("/brands", response_model=List[BrandAdminOut])
def list_brands(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    return db.query(Brand).order_by(Brand.display_order.asc(), Brand.name.asc()).all()


@router.post("/brands", response_model=BrandAdminOut, status_code=status.HTTP_201_CREATED)
def create_brand(
    payload: BrandIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    slug = _unique_slug(db, Brand, payload.slug or generate_slug(payload.name))
    brand = Brand(**{**payload.model_dump(), "slug": slug})
    db.add(brand)
    db.commit()
    db.refresh(brand)

    write_log(db, user_id=session.user_id, action="BRAND_CREATE", resource="brands",
              request=request, meta={"brand_id": brand.id, "slug": slug})
    return brand


@router.put("/brands/{brand_id}", response_model=BrandAdminOut)
def update_brand(
    brand_id: int,
    payload: BrandIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    brand = db.get(Brand, brand_id)
    if not brand:
        raise HTTPException(status_code=404, detail="Brand not found")

    slug = _unique_slug(db, Brand, payload.slug or generate_slug(payload.name), exclude_id=brand_id)
    for field, value in {**payload.model_dump(), "slug": slug}.items():
        setattr(brand, field, value)
    db.commit()
    db.refresh(brand)

    write_log(db, user_id=session.user_id, action="BRAND_UPDATE", resource="brands",
              request=request, meta={"brand_id": brand_id})
    return brand


@router.delete("/brands/{brand_id}")
def delete_brand(
    brand_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    brand = db.get(Brand, brand_id)
    if not brand:
        raise HTTPException(status_code=404, detail="Brand not found")

    db.query(Product).filter(Product.brand_id == brand_id).update({Product.brand_id: None})
    db.delete(brand)
    db.commit()

    write_log(db, user_id=session.user_id, action="BRAND_DELETE", resource="brands",
              request=request, meta={"brand_id": brand_id})
    return {"message": "Brand deleted", "id": brand_id}


# --- Products ---

@router.get("/products", response_model=ProductAdminPage)
def list_products(
    q: Optional[str] = Query(None, description="Search by name or slug"),
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["id", "name", "original_price", "stock_quantity", "created_at"] = "id",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    query = db.query(Product)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.slug.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if brand_id is not None:
        query = query.filter(Product.brand_id == brand_id)

    sort_map = {
        "id": Product.id,
        "name": Product.name,
        "original_price": Product.original_price,
        "stock_quantity": Product.stock_quantity,
        "created_at": Product.created_at,
    }
    col = sort_map.get(sort_by, Product.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.post("/products", response_model=ProductAdminOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    slug = _unique_slug(db, Product, payload.slug or generate_slug(payload.name))
    data = payload.model_dump(exclude={"attributes", "slug"})
    product = Product(**data, slug=slug, in_stock=payload.stock_quantity > 0)
    product.attributes = [_build_attribute(a) for a in payload.attributes]
    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=session.user_id, action="PRODUCT_CREATE", resource="products",
              request=request, meta={"product_id": product.id, "slug": slug})
    logger.info(f"Product {slug} created by {session.user_id}")
    return product


@router.patch("/products/{product_id}", response_model=ProductAdminOut)
def update_product(
    product_id: int,
    payload: ProductPatch,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(product, field, value)

    if product.discount_price is not None and product.discount_price > product.original_price:
        db.rollback()
        raise HTTPException(status_code=400, detail="Discount price cannot exceed the original price")
    if "stock_quantity" in changes:
        product.in_stock = product.stock_quantity > 0

    db.commit()
    db.refresh(product)

    write_log(db, user_id=session.user_id, action="PRODUCT_UPDATE", resource="products",
              request=request, meta={"product_id": product_id, "fields": sorted(changes)})
    return product


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    db.delete(product)
    db.commit()

    write_log(db, user_id=session.user_id, action="PRODUCT_DELETE", resource="products",
              request=request, meta={"product_id": product_id})
    return {"message": "Product deleted", "id": product_id}


# An attribute is created together with its options
@router.post("/products/{product_id}/attributes", response_model=AttributeOut, status_code=status.HTTP_201_CREATED)
def add_attribute(
    product_id: int,
    payload: AttributeIn,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    attribute = _build_attribute(payload)
    product.attributes.append(attribute)
    db.commit()
    db.refresh(attribute)

    write_log(db, user_id=session.user_id, action="ATTRIBUTE_CREATE", resource="products",
              request=request, meta={"product_id": product_id, "attribute_id": attribute.id})
    return attribute


@router.delete("/products/{product_id}/attributes/{attribute_id}")
def delete_attribute(
    product_id: int,
    attribute_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(admin_required),
):
    attribute = db.query(ProductAttribute).filter(
        ProductAttribute.id == attribute_id, ProductAttribute.product_id == product_id
    ).first()
    if not attribute:
        raise HTTPException(status_code=404, detail="Attribute not found")

    db.delete(attribute)
    db.commit()

    write_log(db, user_id=session.user_id, action="ATTRIBUTE_DELETE", resource="products",
              request=request, meta={"product_id": product_id, "attribute_id": attribute_id})
    return {"message": "Attribute deleted", "id": attribute_id}
