"""
FastAPI dependencies wiring request-scoped services.
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from docchat.core.database import get_db
from docchat.core.services import ServiceContainer, SharedClients, build_services


def get_shared_clients(request: Request) -> SharedClients:
    """Process-wide clients created at startup."""
    shared = getattr(request.app.state, "shared_clients", None)
    if shared is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not configured"
        )
    return shared


def get_services(
    shared: SharedClients = Depends(get_shared_clients),
    db: Session = Depends(get_db),
) -> ServiceContainer:
    """Services bound to this request's database session."""
    return build_services(shared, db)
