from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenantauth.authz.data_scope import DataScopeFilter, ResourceRef
from tenantauth.db.session import get_db
from tenantauth.models.booking import Booking
from tenantauth.schemas.booking import BookingOut
from tenantauth.security.dependencies import get_data_scope

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingOut])
def list_bookings(db: Session = Depends(get_db)) -> list[Booking]:
    # Rows are scoped transparently via tenantauth/db/filters.py based on the request's context.
    return list(db.scalars(select(Booking).order_by(Booking.id)).all())


@router.get("/{id}", response_model=BookingOut)
def get_booking(
    id: int,
    db: Session = Depends(get_db),
    scope: DataScopeFilter = Depends(get_data_scope),
) -> Booking:
    booking = db.scalars(select(Booking).where(Booking.id == id)).first()
    resource = None if booking is None else ResourceRef(
        organization_id=booking.organization_id,
        parent_id=booking.parent_id,
        created_by_tutor_id=booking.created_by_tutor_id,
    )
    if resource is None or not scope.can_access_resource(resource):
        # Out-of-scope rows look exactly like missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking
