"""Router exposing the product catalog and stock adjustments."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import require_seller_or_admin
from ..services import DuplicateProductCodeError, ProductService, ProductServiceError

router = APIRouter(dependencies=[Depends(require_seller_or_admin)])


@router.get("/", response_model=schemas.ProductListResponse)
def list_products(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    search: Optional[str] = Query(None, description="Search by name, code or description"),
    category: Optional[str] = Query(None),
    low_stock: bool = Query(False, description="Only products at or below their minimum stock"),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
) -> schemas.ProductListResponse:
    items, total = ProductService.list_products(
        db,
        include_inactive=include_inactive,
        search=search,
        category=category,
        low_stock=low_stock,
        offset=offset,
        limit=limit,
    )
    return schemas.ProductListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=schemas.ProductStats)
def product_stats(db: Session = Depends(get_db)) -> schemas.ProductStats:
    return ProductService.stats(db)


@router.get("/code/{code}", response_model=schemas.ProductRead)
def get_product_by_code(code: str, db: Session = Depends(get_db)) -> schemas.ProductRead:
    product = ProductService.get_by_code(db, code)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("/{product_id}", response_model=schemas.ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)) -> schemas.ProductRead:
    product = ProductService.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.post("/", response_model=schemas.ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    product_in: schemas.ProductCreate,
    db: Session = Depends(get_db),
) -> schemas.ProductRead:
    try:
        return ProductService.create_product(db, product_in)
    except DuplicateProductCodeError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ProductServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.put("/{product_id}", response_model=schemas.ProductRead)
def update_product(
    product_id: int,
    product_in: schemas.ProductUpdate,
    db: Session = Depends(get_db),
) -> schemas.ProductRead:
    product = ProductService.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    try:
        return ProductService.update_product(db, product, product_in)
    except DuplicateProductCodeError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ProductServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.patch("/{product_id}/stock", response_model=schemas.ProductRead)
def adjust_stock(
    product_id: int,
    payload: schemas.StockAdjustment,
    db: Session = Depends(get_db),
) -> schemas.ProductRead:
    """Add or remove units; the stored stock never goes below zero."""
    product = ProductService.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    try:
        return ProductService.adjust_stock(db, product, payload.quantity, reason=payload.reason)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ProductServiceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.delete("/{product_id}", response_model=schemas.MessageResponse)
def delete_product(product_id: int, db: Session = Depends(get_db)) -> schemas.MessageResponse:
    product = ProductService.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    if ProductService.delete_product(db, product):
        return schemas.MessageResponse(message="Product deleted")
    return schemas.MessageResponse(message="Product has sales history and was deactivated")
