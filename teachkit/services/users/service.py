import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teachkit.models.user import User
from teachkit.services.ledger.base import PaymentLedger

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email.strip().lower()).one_or_none()

    def get_or_create(self, email: str, name: str | None = None, stripe_customer_id: str | None = None) -> User:
        email = email.strip().lower()
        user = self.get_by_email(email)
        if user:
            changed = False
            if name and not user.name:
                user.name = name
                changed = True
            if stripe_customer_id and not user.stripe_customer_id:
                user.stripe_customer_id = stripe_customer_id
                changed = True
            if changed:
                self.db.add(user)
                self.db.commit()
                self.db.refresh(user)
            return user
        user = User(email=email, name=name, stripe_customer_id=stripe_customer_id)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Created concurrently (webhook vs. request)
            self.db.rollback()
            return self.get_by_email(email)
        self.db.refresh(user)
        logger.info("user_created", extra={"user_id": user.id})
        return user

    def resolve_billing_customer(self, email: str, name: str | None, ledger: PaymentLedger) -> tuple[User, str]:
        """
        Return the local user and their billing customer id, creating either as needed.
        A stored customer id that the ledger no longer knows is replaced.
        """
        user = self.get_or_create(email, name)
        customer_id = user.stripe_customer_id
        if customer_id and ledger.customer_exists(customer_id):
            return user, customer_id

        customer_id = ledger.ensure_customer(user.email, user.name)
        user.stripe_customer_id = customer_id
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("billing_customer_linked", extra={"user_id": user.id, "customer": customer_id})
        return user, customer_id
