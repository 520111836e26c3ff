from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from storefront.models.log import Log


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    # Behind the frontend proxy the first forwarded hop is the customer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or request.client.host
    return request.client.host


def write_log(db: Session, *, action, resource, status="SUCCESS", user_id=None, ip=None,
              request: Optional[Request] = None, meta=None):
    # Auth provider ids are strings; guests are logged without one
    entry = Log(
        user_id=str(user_id) if user_id is not None else None,
        action=action,
        resource=resource,
        status=status,
        ip=ip or client_ip(request),
        meta=meta or {},
    )
    db.add(entry)
    db.commit()
