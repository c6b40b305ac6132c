"""Account service - email lookups used to choose guest or account checkout"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .repository import AccountRepository

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = AccountRepository()

    def is_registered(self, email: str) -> bool:
        trimmed = (email or "").strip()
        if not trimmed:
            raise HTTPException(status_code=400, detail="Email required")
        registered = self.repo.get_by_email(self.db, trimmed) is not None
        logger.debug(f"🔍 Email check: registered={registered}")
        return registered
