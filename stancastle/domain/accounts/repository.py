"""Account repository - Database operations for customer accounts"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Account, utcnow


class AccountRepository:
    """Repository for account database operations"""

    @staticmethod
    def get_by_id(db: Session, account_id: str) -> Optional[Account]:
        return db.query(Account).filter(Account.id == account_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[Account]:
        return db.query(Account).filter(func.lower(Account.email) == email.strip().lower()).first()

    @staticmethod
    def create_account(db: Session, **account_data) -> Account:
        account = Account(**account_data)
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def mark_partner(db: Session, account_id: str, gateway_customer_id: Optional[str]) -> bool:
        values = {"is_partner": True, "updated_at": utcnow()}
        if gateway_customer_id:
            values["gateway_customer_id"] = gateway_customer_id
        updated = (
            db.query(Account)
            .filter(Account.id == account_id)
            .update(values, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def clear_partner_by_customer(db: Session, gateway_customer_id: str) -> int:
        updated = (
            db.query(Account)
            .filter(Account.gateway_customer_id == gateway_customer_id, Account.is_partner.is_(True))
            .update({"is_partner": False, "updated_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated
