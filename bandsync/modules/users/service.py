import logging
from typing import List, Optional
from fastapi import HTTPException
from pydantic import ValidationError
from bandsync.config.permissions_config import UserRole
from bandsync.database.document_store import Document, DocumentStore, Transaction, TransactionConflict, USERS
from bandsync.modules.users.schemas import UserModel, UserUpdate

logger = logging.getLogger(__name__)


def parse_role(value) -> UserRole:
    """Map a stored role string to UserRole; unknown values become Member"""
    try:
        return UserRole(value)
    except ValueError:
        return UserRole.MEMBER


def decode_user(document: Document) -> Optional[UserModel]:
    """
    Decode a user document. When the document does not validate, rebuild it
    from its fields: email and name are required, everything else falls back
    to defaults. Returns None when the document cannot be rebuilt.
    """
    try:
        return UserModel.model_validate({**document.data, "id": document.id})
    except ValidationError as e:
        logger.warning(f"User document {document.id} failed validation, rebuilding: {e.error_count()} error(s)")

    data = document.data
    email = data.get("email")
    name = data.get("name")
    if not isinstance(email, str) or not isinstance(name, str):
        logger.error(f"User document {document.id} is missing email or name")
        return None

    phone = data.get("phone")
    group_id = data.get("group_id")
    return UserModel(
        id=document.id,
        email=email,
        name=name,
        phone=phone if isinstance(phone, str) else "",
        group_id=group_id if isinstance(group_id, str) and group_id else None,
        role=parse_role(data.get("role")),
    )


def needs_write_back(user: UserModel, data: dict) -> bool:
    """True when the decoded profile differs from what is stored; null and absent fields are equal"""
    def present(fields: dict) -> dict:
        return {key: value for key, value in fields.items() if value is not None}
    return present(user.to_document()) != present(data)


def default_name(email: str) -> str:
    local_part = email.split("@")[0]
    return local_part or "User"


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def find_user(self, user_id: str) -> Optional[UserModel]:
        """Get user profile by ID, or None when missing or unreadable"""
        document = self.store.get(USERS, user_id)
        if document is None:
            return None
        return decode_user(document)

    def get_user(self, user_id: str) -> UserModel:
        """Get user profile by ID"""
        user = self.find_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def create_profile(self, user_id: str, email: str, name: Optional[str] = None, phone: str = "") -> UserModel:
        """Create (or fully replace) a user profile with no group and the Member role"""
        user = UserModel(
            id=user_id,
            email=email,
            name=name or default_name(email),
            phone=phone or "",
            group_id=None,
            role=UserRole.MEMBER,
        )
        try:
            self.store.set(USERS, user_id, user.to_document())
        except Exception as e:
            logger.error(f"Error creating profile for {user_id}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to create user profile: {e}")
        logger.info(f"Created profile for user {user_id}")
        return user

    def _write_back_repair(self, user_id: str) -> Optional[UserModel]:
        """
        Re-read and rewrite a repairable profile in a transaction, so a
        membership change committed in between is not overwritten. Returns
        None when the profile vanished or became unreadable meanwhile.
        """
        def txn_fn(txn: Transaction) -> Optional[UserModel]:
            document = txn.get(USERS, user_id)
            user = decode_user(document) if document else None
            if user is not None and needs_write_back(user, document.data):
                logger.info(f"Writing back repaired profile for user {user_id}")
                txn.set(USERS, user_id, user.to_document())
            return user

        try:
            user = self.store.run_transaction(txn_fn)
        except TransactionConflict:
            raise HTTPException(status_code=409, detail="Profile was modified concurrently, please retry")
        return user

    def ensure_user_exists(self, user_id: str, email: Optional[str]) -> UserModel:
        """
        Return the user's profile, repairing or creating it when needed.
        A repaired document is written back; an unreadable one is replaced by a
        fresh profile built from the auth email.
        """
        document = self.store.get(USERS, user_id)
        if document is not None:
            user = decode_user(document)
            if user is not None:
                if not needs_write_back(user, document.data):
                    return user
                repaired = self._write_back_repair(user_id)
                if repaired is not None:
                    return repaired
            stored_email = document.data.get("email")
            if not email and isinstance(stored_email, str):
                email = stored_email

        if not email:
            raise HTTPException(status_code=404, detail="User not found")
        logger.info(f"Profile for user {user_id} missing or unreadable, creating a new one")
        return self.create_profile(user_id, email)

    def update_profile(self, user_id: str, user_data: UserUpdate) -> UserModel:
        """Update user profile"""
        update_data = {}
        if user_data.name:
            update_data["name"] = user_data.name
        if user_data.phone is not None:
            update_data["phone"] = user_data.phone

        if not update_data:
            return self.get_user(user_id)

        document = self.store.update(USERS, user_id, update_data)
        if document is None:
            raise HTTPException(status_code=404, detail="User not found")
        user = decode_user(document)
        if user is None:
            raise HTTPException(status_code=500, detail="User profile is unreadable")
        return user

    def find_user_by_email(self, email: str) -> Optional[UserModel]:
        documents = self.store.query(USERS, filters=[("email", "==", email)], limit=1)
        if not documents:
            return None
        return decode_user(documents[0])

    def get_users(self, user_ids: List[str]) -> List[UserModel]:
        """Fetch several profiles; unreadable documents are skipped"""
        users = []
        for document in self.store.get_all(USERS, user_ids):
            user = decode_user(document)
            if user is not None:
                users.append(user)
        return users
