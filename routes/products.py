import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from core.tenancy import get_owned_store
from models.product import Product
from models.user import User
from routes.auth import get_current_user
from schemas.product import ProductCreate, ProductOut
from services.plan_limits import ResourceKind, ensure_within_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=List[ProductOut])
def list_products(
    store_id: Optional[int] = Query(default=None, alias="storeId"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    store = get_owned_store(db, user.id, store_id)
    return db.query(Product).filter(Product.store_id == store.id).order_by(Product.created_at.desc()).all()


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = ensure_within_limit(db, user.id, data.store_id, ResourceKind.PRODUCTS)
    product = Product(
        store_id=store.id,
        name=data.name.strip(),
        description=data.description,
        category=data.category,
        price=data.price,
        stock=data.stock,
        images=data.images,
        is_active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product %s created in store %s", product.id, store.id)
    return product
