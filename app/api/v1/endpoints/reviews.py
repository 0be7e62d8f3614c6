"""Review endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.review import Review
from app.models.user import User
from app.schemas.review import ReviewCreate, ReviewRead
from app.services.review_service import submit_review

router: APIRouter = APIRouter()


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Review:
    return submit_review(
        db,
        customer=current_user,
        order_id=payload.order_id,
        product_id=payload.product_id,
        rating=payload.rating,
        comment=payload.comment,
    )
