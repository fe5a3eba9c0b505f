"""Utilities to reconcile client aggregates with the sales table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..time_utils import as_utc


@dataclass(frozen=True)
class ClientAggregateMismatch:
    """A client whose stored totals differ from what its sales add up to."""

    client_id: int
    name: str
    stored_total: Decimal
    computed_total: Decimal
    stored_last_purchase: Optional[date]
    computed_last_purchase: Optional[date]


class DataConsistencyService:
    """Data reconciliation helpers to surface integrity issues."""

    @staticmethod
    def _sales_by_client(db: Session) -> dict[int, tuple[Decimal, Optional[date]]]:
        rows = (
            db.query(
                models.Sale.client_id,
                func.coalesce(func.sum(models.Sale.final_amount), 0),
                func.max(models.Sale.sale_date),
            )
            .filter(models.Sale.client_id.isnot(None))
            .group_by(models.Sale.client_id)
            .all()
        )
        result = {}
        for client_id, total, latest in rows:
            latest = as_utc(latest)
            result[client_id] = (
                Decimal(str(total)).quantize(Decimal("0.01")),
                latest.date() if latest else None,
            )
        return result

    @classmethod
    def client_aggregates(cls, db: Session) -> list[ClientAggregateMismatch]:
        """Compare each client's ``total_spent`` and ``last_purchase`` with its sales."""

        computed = cls._sales_by_client(db)
        mismatches: list[ClientAggregateMismatch] = []
        for client in db.query(models.Client).order_by(models.Client.id).all():
            computed_total, computed_last = computed.get(client.id, (Decimal("0.00"), None))
            stored_total = Decimal(str(client.total_spent or 0)).quantize(Decimal("0.01"))
            if stored_total != computed_total or client.last_purchase != computed_last:
                mismatches.append(
                    ClientAggregateMismatch(
                        client_id=client.id,
                        name=client.name,
                        stored_total=stored_total,
                        computed_total=computed_total,
                        stored_last_purchase=client.last_purchase,
                        computed_last_purchase=computed_last,
                    )
                )
        return mismatches

    @staticmethod
    def repair_client_aggregates(
        db: Session, mismatches: Iterable[ClientAggregateMismatch]
    ) -> int:
        """Overwrite the stored aggregates with the computed ones; the caller commits."""

        repaired = 0
        for mismatch in mismatches:
            client = db.get(models.Client, mismatch.client_id)
            if client is None:
                continue
            client.total_spent = mismatch.computed_total
            client.last_purchase = mismatch.computed_last_purchase
            repaired += 1
        db.flush()
        return repaired
