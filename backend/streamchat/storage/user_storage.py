"""
User Storage - persistence of user accounts.
"""

from typing import Optional

from sqlalchemy.orm import Session

from .tables import UserRecord


class UserStorage:
    """
    Queries over the users table.
    Deleting a user cascades to its chats and their messages.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.db.get(UserRecord, user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return (
            self.db.query(UserRecord)
              .filter(UserRecord.username == username)
              .first()
        )

    def create_user(
        self,
        username: str,
        hashed_password: str,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> UserRecord:
        """
        Create a new user.

        Args:
            username: Unique username
            hashed_password: bcrypt hash
            email: Optional email
            full_name: Optional display name

        Returns:
            UserRecord: The persisted user
        """
        user = UserRecord(
            username=username,
            hashed_password=hashed_password,
            email=email,
            full_name=full_name,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, user_id: str) -> bool:
        user = self.get_user(user_id)
        if user is None:
            return False
        self.db.delete(user)
        self.db.commit()
        return True
