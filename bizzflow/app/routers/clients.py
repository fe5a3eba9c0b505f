"""Router containing CRUD operations for clients."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import require_seller_or_admin
from ..services import ClientService, ClientServiceError

router = APIRouter(dependencies=[Depends(require_seller_or_admin)])


@router.get("/", response_model=schemas.ClientListResponse)
def list_clients(
    offset: int = Query(0, ge=0, description="Number of clients to skip"),
    limit: int = Query(50, ge=1, le=1000, description="Maximum number of clients to return"),
    search: Optional[str] = Query(None, description="Search by name, email or phone"),
    category: Optional[models.ClientCategory] = Query(None, description="Filter by category"),
    city: Optional[str] = Query(None, description="Filter by city"),
    db: Session = Depends(get_db),
) -> schemas.ClientListResponse:
    """Return clients with pagination and optional filters."""
    normalized_search = search.strip() if search else None

    items, total = ClientService.list_clients(
        db,
        offset=offset,
        limit=limit,
        search=normalized_search,
        category=category,
        city=city,
    )
    return schemas.ClientListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=schemas.ClientStats)
def client_stats(db: Session = Depends(get_db)) -> schemas.ClientStats:
    return ClientService.stats(db)


@router.get("/email/{email}", response_model=schemas.ClientRead)
def get_client_by_email(email: str, db: Session = Depends(get_db)) -> schemas.ClientRead:
    client = ClientService.get_by_email(db, email)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.get("/{client_id}", response_model=schemas.ClientRead)
def get_client(client_id: int, db: Session = Depends(get_db)) -> schemas.ClientRead:
    """Retrieve a single client by its identifier."""
    client = ClientService.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.post("/", response_model=schemas.ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    client_in: schemas.ClientCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_seller_or_admin),
) -> schemas.ClientRead:
    """Create a new client record."""
    try:
        return ClientService.create_client(db, client_in, created_by=user.id)
    except ClientServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc


@router.put("/{client_id}", response_model=schemas.ClientRead)
def update_client(
    client_id: int,
    client_in: schemas.ClientUpdate,
    db: Session = Depends(get_db),
) -> schemas.ClientRead:
    """Update a client's information."""
    client = ClientService.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    try:
        return ClientService.update_client(db, client, client_in)
    except ClientServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, db: Session = Depends(get_db)) -> None:
    """Delete a client if it exists."""
    client = ClientService.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    ClientService.delete_client(db, client)
