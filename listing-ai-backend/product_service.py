"""
Read and edit access to finished listings.

Products are only ever created by the pipeline; this service never creates or
deletes them, so a product always belongs to a SUCCESS job.
"""

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from config import PRODUCTS_PAGE_SIZE
from errors import NotFoundError, PersistenceError, ValidationError
from models import Product
from schemas import ProductListResponse, ProductResponse, ProductUpdateRequest


class ProductService:
    def __init__(self, session_factory, page_size: int = PRODUCTS_PAGE_SIZE):
        self._session_factory = session_factory
        self.page_size = page_size

    def get_product(self, product_id: str) -> ProductResponse:
        with self._session_factory() as db:
            product = (
                db.query(Product)
                .options(joinedload(Product.image))
                .filter(Product.id == product_id)
                .first()
            )
            if product is None:
                raise NotFoundError("Product not found")
            return ProductResponse.from_row(product)

    def list_products(self, user_id: str, offset: int = 0) -> ProductListResponse:
        if not user_id:
            raise ValidationError("User id is required")
        if offset < 0:
            raise ValidationError("Offset must not be negative")

        with self._session_factory() as db:
            total = db.query(func.count(Product.id)).filter(Product.user_id == user_id).scalar()
            rows = (
                db.query(Product)
                .options(joinedload(Product.image))
                .filter(Product.user_id == user_id)
                .order_by(Product.created_at.desc(), Product.id)
                .offset(offset)
                .limit(self.page_size)
                .all()
            )
            return ProductListResponse(
                products=[ProductResponse.from_row(p) for p in rows],
                is_more=total - offset > self.page_size,
                total_count=total,
            )

    def update_product(self, product_id: str, update: ProductUpdateRequest) -> ProductResponse:
        changes = update.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("Nothing to update")
        if changes.get("attributes") is not None:
            changes["attributes"] = update.attributes.model_dump(exclude_none=True)

        with self._session_factory() as db:
            product = db.get(Product, product_id)
            if product is None:
                raise NotFoundError("Product not found")
            for name, value in changes.items():
                if value is None and name in ("title", "description", "keywords", "bullet_points"):
                    raise ValidationError(f"{name} cannot be removed")
                setattr(product, name, value)
            try:
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError("Update failed, try again later") from e
        return self.get_product(product_id)
