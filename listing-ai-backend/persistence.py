"""
Atomic commit of a finished listing: Product, ProductImage and the SUCCESS
status are written in one transaction or not at all.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from contracts import JobStatus
from errors import NotFoundError, PersistenceError
from job_store import JobStore, load_for_update
from models import Product, ProductImage


class ProductCommitter:
    def __init__(self, session_factory, job_store: JobStore):
        self._session_factory = session_factory
        self._job_store = job_store

    def commit_product_result(self, job_id: str, product_fields: dict, image_fields: dict) -> Product:
        with self._session_factory() as db:
            try:
                job = load_for_update(db, job_id)
                if job.status == JobStatus.SUCCESS:
                    logging.info(f"Job {job_id} already committed; keeping existing product")
                    return db.query(Product).filter(Product.job_id == job_id).one()

                product = Product(job_id=job_id, user_id=job.user_id, **product_fields)
                db.add(product)
                db.flush()
                db.add(ProductImage(product_id=product.id, **image_fields))
                self._job_store.mark_success(db, job_id)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(f"Could not save product for job {job_id}: {e.__class__.__name__}") from e
            except (NotFoundError, PersistenceError):
                db.rollback()
                raise

        logging.info(f"💾 Job {job_id} committed product {product.id}")
        return product
