import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import Business
from .shared.validators import validate_uuid

logger = logging.getLogger(__name__)


async def get_current_business(
    x_business_id: Optional[str] = Header(None, alias="X-Business-Id"),
    db: Session = Depends(get_db),
) -> Business:
    """
    Resolve the caller's business from the X-Business-Id header.

    The header is set by the authentication gateway in front of this
    service after it has verified the caller; only the tenant is resolved here.
    """
    if not x_business_id:
        logger.warning("⚠️ Request without X-Business-Id header")
        raise HTTPException(status_code=401, detail="Not authenticated")

    if not validate_uuid(x_business_id):
        raise HTTPException(status_code=401, detail="Invalid business id")

    business = db.query(Business).filter(Business.id == x_business_id).first()
    if not business:
        logger.warning(f"⚠️ Unknown business {x_business_id}")
        raise HTTPException(status_code=404, detail="Business not found")

    return business
