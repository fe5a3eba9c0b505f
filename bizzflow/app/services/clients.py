"""Business logic related to client resources."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..time_utils import as_utc, day_start, month_start, utcnow

LOGGER = logging.getLogger(__name__)


class ClientServiceError(RuntimeError):
    """Raised when a client operation cannot be completed."""


class ClientService:
    """Encapsulates CRUD operations and purchase aggregates for clients."""

    @staticmethod
    def list_clients(
        db: Session,
        *,
        offset: int = 0,
        limit: int = 100,
        search: Optional[str] = None,
        category: Optional[models.ClientCategory] = None,
        city: Optional[str] = None,
    ) -> Tuple[Iterable[models.Client], int]:
        query = db.query(models.Client)

        if search:
            normalized = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(models.Client.name).like(normalized),
                    func.lower(func.coalesce(models.Client.email, "")).like(normalized),
                    func.coalesce(models.Client.phone, "").like(normalized),
                )
            )

        if category is not None:
            query = query.filter(models.Client.category == category)

        if city:
            query = query.filter(func.lower(models.Client.city) == city.strip().lower())

        total = query.count()
        items = (
            query.order_by(models.Client.name)
            .offset(max(offset, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[models.Client]:
        return db.query(models.Client).filter(models.Client.id == client_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[models.Client]:
        return (
            db.query(models.Client)
            .filter(func.lower(models.Client.email) == email.strip().lower())
            .first()
        )

    @staticmethod
    def create_client(
        db: Session,
        data: schemas.ClientCreate,
        *,
        created_by: Optional[int] = None,
    ) -> models.Client:
        client = models.Client(**data.model_dump(), created_by=created_by, total_spent=Decimal("0"))
        db.add(client)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ClientServiceError("The client could not be created right now.") from exc
        db.refresh(client)
        LOGGER.info("Client %s created by user %s", client.id, created_by)
        return client

    @staticmethod
    def update_client(
        db: Session,
        client: models.Client,
        data: schemas.ClientUpdate,
    ) -> models.Client:
        update_data = data.model_dump(exclude_unset=True)
        for field in ("name", "category"):
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        for key, value in update_data.items():
            setattr(client, key, value)

        try:
            db.add(client)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ClientServiceError("The client could not be updated.") from exc
        db.refresh(client)
        return client

    @staticmethod
    def delete_client(db: Session, client: models.Client) -> None:
        client_id = client.id
        # Sales keep their history as walk-in sales.
        db.execute(
            update(models.Sale)
            .where(models.Sale.client_id == client_id)
            .values(client_id=None)
            .execution_options(synchronize_session=False)
        )
        db.delete(client)
        db.commit()
        LOGGER.info("Client %s deleted", client_id)

    @staticmethod
    def apply_purchase(
        db: Session,
        client_id: int,
        amount: Decimal,
        purchased_on: date,
    ) -> bool:
        """Add ``amount`` to the client's lifetime spend inside the caller's transaction."""

        result = db.execute(
            update(models.Client)
            .where(models.Client.id == client_id)
            .values(
                total_spent=models.Client.total_spent + amount,
                last_purchase=purchased_on,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def reverse_purchase(
        db: Session,
        client_id: int,
        amount: Decimal,
        *,
        excluding_sale_id: Optional[int] = None,
    ) -> bool:
        """Subtract ``amount`` and recompute ``last_purchase`` from the remaining sales."""

        remaining = db.query(func.max(models.Sale.sale_date)).filter(
            models.Sale.client_id == client_id
        )
        if excluding_sale_id is not None:
            remaining = remaining.filter(models.Sale.id != excluding_sale_id)
        latest = as_utc(remaining.scalar())

        result = db.execute(
            update(models.Client)
            .where(models.Client.id == client_id)
            .values(
                total_spent=case(
                    (models.Client.total_spent - amount < 0, 0),
                    else_=models.Client.total_spent - amount,
                ),
                last_purchase=latest.date() if latest else None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def stats(db: Session) -> schemas.ClientStats:
        total_clients = db.query(func.count(models.Client.id)).scalar() or 0
        by_category = {
            (category.value if isinstance(category, models.ClientCategory) else str(category)): int(count)
            for category, count in db.query(models.Client.category, func.count(models.Client.id))
            .group_by(models.Client.category)
            .all()
        }
        total_revenue = Decimal(
            str(db.query(func.coalesce(func.sum(models.Client.total_spent), 0)).scalar() or 0)
        )
        average_spent = (
            (total_revenue / total_clients).quantize(Decimal("0.01")) if total_clients else Decimal("0")
        )
        first_of_month = day_start(month_start(utcnow().date()))
        new_this_month = (
            db.query(func.count(models.Client.id))
            .filter(models.Client.created_at >= first_of_month)
            .scalar()
        ) or 0
        return schemas.ClientStats(
            total_clients=total_clients,
            by_category=by_category,
            vip_clients=by_category.get(models.ClientCategory.VIP.value, 0),
            total_revenue=total_revenue.quantize(Decimal("0.01")),
            average_spent=average_spent,
            new_this_month=new_this_month,
        )
