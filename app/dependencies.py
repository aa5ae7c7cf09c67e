from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import Location


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def get_location_scope(location_id: int | None = None, db: Session = Depends(get_db)) -> int | None:
    """Optional `location_id` query filter; unknown or closed locations are a 404."""
    if location_id is None:
        return None
    location = db.get(Location, location_id)
    if not location or not location.active:
        raise HTTPException(status_code=404, detail='Location not found')
    return location.id
