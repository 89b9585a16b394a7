"""User lookup and provisioning."""

import logging

from sqlalchemy.orm import Session

from models import User

logger = logging.getLogger(__name__)


class UserService:
    """Service for the users table."""

    @staticmethod
    def get_user(db: Session, user_id: str) -> User | None:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_or_create_user(
        db: Session,
        user_id: str,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        """Return the user, creating the row on first sight of a token subject.

        Email and name from the token refresh the stored values when present.
        """
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            user = User(id=user_id, email=email or f"{user_id}@users.invalid", name=name or "")
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info("Provisioned user %s", user_id)
            return user

        changed = False
        if email and user.email != email:
            user.email = email
            changed = True
        if name and user.name != name:
            user.name = name
            changed = True
        if changed:
            db.commit()
            db.refresh(user)
        return user

    @staticmethod
    def delete_user(db: Session, user_id: str) -> bool:
        """Delete a user and, through cascades, everything they own."""
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            return False
        db.delete(user)
        db.commit()
        logger.info("Deleted user %s", user_id)
        return True
