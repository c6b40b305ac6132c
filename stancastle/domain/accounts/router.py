"""Accounts router"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .schemas import CheckEmailRequest, CheckEmailResponse
from .service import AccountService

router = APIRouter(prefix="/accounts", tags=["Accounts"])

rate_limit_check_email = create_rate_limiter(limit=30, window_seconds=60, key_prefix="check_email")


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db)


@router.post("/check-email", response_model=CheckEmailResponse)
async def check_email(
    data: CheckEmailRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_check_email),
):
    """Whether the email belongs to an existing account (guest vs sign-in flow)"""
    return CheckEmailResponse(registered=service.is_registered(data.email))
