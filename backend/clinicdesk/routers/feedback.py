# clinicdesk/routers/feedback.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.feedback import Feedback
from ..schemas.feedback import FeedbackCreate, FeedbackStatus, FeedbackStatusUpdate
from ..services.rate_limit import SlidingWindowLimiter
from .common import Page, iso

log = logging.getLogger("clinicdesk.api")

router = APIRouter(prefix="/api/feedback", tags=["Feedback"])


def get_limiter(request: Request) -> SlidingWindowLimiter:
    return request.app.state.feedback_limiter


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def feedback_to_dict(f: Feedback):
    return {
        "id": int(f.id),
        "firstName": f.first_name,
        "lastName": f.last_name,
        "email": f.email,
        "phone": f.phone,
        "company": f.company,
        "message": f.message,
        "status": f.status,
        "ipAddress": f.ip_address,
        "userAgent": f.user_agent,
        "createdAt": iso(f.created_at),
        "updatedAt": iso(f.updated_at),
    }


def _find(db: Session, feedback_id: int) -> Feedback:
    feedback = db.get(Feedback, feedback_id)
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return feedback


# =============================================================================
#                              PUBLIC SUBMISSION
# =============================================================================
@router.post("", status_code=201)
def submit_feedback(
    body: FeedbackCreate,
    request: Request,
    db: Session = Depends(get_db),
    limiter: SlidingWindowLimiter = Depends(get_limiter),
):
    ip = client_ip(request)
    if not limiter.hit(ip):
        log.warning("feedback_rate_limited ip=%s", ip)
        raise HTTPException(status_code=429, detail="Too many submissions. Please try again later.")

    now = datetime.now(timezone.utc)
    recent = (
        db.query(Feedback.id)
        .filter(Feedback.email == body.email)
        .filter(Feedback.created_at >= now - timedelta(hours=settings.FEEDBACK_DUPLICATE_HOURS))
        .first()
    )
    if recent:
        raise HTTPException(
            status_code=400,
            detail="You have already submitted feedback recently. Please wait before submitting again.",
        )

    feedback = Feedback(
        **body.model_dump(),
        status="PENDING",
        ip_address=ip,
        user_agent=(request.headers.get("user-agent") or "")[:255],
        created_at=now,
        updated_at=now,
    )
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    log.info("feedback_submitted id=%s email=%s ip=%s", feedback.id, feedback.email, ip)
    return {
        "success": True,
        "message": "Thank you for your feedback! We will get back to you soon.",
        "feedback": {"id": int(feedback.id), "submittedAt": iso(feedback.created_at)},
    }


# =============================================================================
#                                 ADMIN QUEUE
# =============================================================================
@router.get("")
def list_feedback(
    status: Optional[FeedbackStatus] = None,
    email: str = "",
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("feedback:read")),
):
    query = db.query(Feedback)
    if status:
        query = query.filter(Feedback.status == status)
    if email:
        query = query.filter(func.lower(Feedback.email).like(f"%{email.strip().lower()}%"))
    total = query.count()
    rows = query.order_by(Feedback.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "feedback": [feedback_to_dict(f) for f in rows], "pagination": page.meta(total)}


@router.get("/{feedback_id}")
def get_feedback(
    feedback_id: int,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("feedback:read")),
):
    return {"success": True, "feedback": feedback_to_dict(_find(db, feedback_id))}


@router.patch("/{feedback_id}")
def update_feedback_status(
    feedback_id: int,
    body: FeedbackStatusUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("feedback:write")),
):
    feedback = _find(db, feedback_id)
    feedback.status = body.status
    db.commit()
    db.refresh(feedback)
    log.info("feedback_status id=%s status=%s by=%s", feedback_id, body.status, ctx.user_id)
    return {"success": True, "feedback": feedback_to_dict(feedback)}


@router.delete("/{feedback_id}")
def delete_feedback(
    feedback_id: int,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("feedback:write")),
):
    db.delete(_find(db, feedback_id))
    db.commit()
    return {"success": True}
