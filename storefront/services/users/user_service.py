# storefront/services/users/user_service.py
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from storefront.core.errors import ConflictError, DependencyError
from storefront.db.models import Role, User

logger = logging.getLogger(__name__)


class UserService:
    """Account store backed by the ``users`` table"""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _db_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error while trying to {action}: {e}", exc_info=True)
            raise DependencyError("Database error") from e

    def find_by_email_or_phone(self, email: str, phone: str) -> Optional[User]:
        with self._db_errors("find user by email or phone"):
            statement = select(User).where(or_(User.email == email, User.phone == phone))
            return self.session.exec(statement).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._db_errors("find user by id"):
            return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        with self._db_errors("find user by email"):
            return self.session.exec(select(User).where(User.email == email)).first()

    def create(self, username: str, email: str, phone: str, password_hash: str,
               role: Role = Role.USER) -> User:
        user = User(
            username=username,
            email=email,
            phone=phone,
            password_hash=password_hash,
            role=role,
        )
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email/phone
            self.session.rollback()
            logger.warning(f"Duplicate account on create: {e.orig}")
            raise ConflictError("User with this email or phone already exists") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error creating user: {e}", exc_info=True)
            raise DependencyError("Database error") from e
        self.session.refresh(user)
        return user

    def update_password(self, password_hash: str, user_id: Optional[str] = None,
                        email: Optional[str] = None) -> bool:
        """Replace the stored hash for the account matched by id, else by email.

        Returns False when no account matched.
        """
        if user_id:
            user = self.find_by_id(user_id)
        elif email:
            user = self.find_by_email(email)
        else:
            raise ValueError("user_id or email is required")

        if not user:
            return False

        with self._db_errors("update password"):
            user.password_hash = password_hash
            user.updated_at = datetime.now(timezone.utc)
            self.session.add(user)
            self.session.commit()
        return True

    def list_all(self) -> List[User]:
        with self._db_errors("list users"):
            return list(self.session.exec(select(User).order_by(User.created_at)).all())

    def count(self) -> int:
        with self._db_errors("count users"):
            return self.session.exec(select(func.count()).select_from(User)).one()
