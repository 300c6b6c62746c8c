import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional
from fastapi import HTTPException
from pydantic import ValidationError
from bandsync.config.permissions_config import EDITOR_ROLES, UserRole
from bandsync.config.settings import settings as app_settings
from bandsync.database.document_store import (
    DELETE_FIELD, Document, DocumentStore, Transaction, TransactionConflict,
    GROUPS, PERMISSIONS, USERS,
)
from bandsync.modules.groups import membership
from bandsync.modules.groups.membership import MembershipError, MembershipState
from bandsync.modules.groups.schemas import (
    GroupModel, GroupSettings, GroupMembersResponse, GroupCapabilities
)
from bandsync.modules.permissions.cache import get_permission_cache
from bandsync.modules.permissions.resolver import default_permission_model
from bandsync.modules.users.schemas import UserModel
from bandsync.modules.users.service import UserService, decode_user

logger = logging.getLogger(__name__)


def generate_invite_code(length: int = 6) -> str:
    """Uppercase code taken from a random UUID"""
    return uuid.uuid4().hex[:length].upper()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def decode_group(document: Document) -> GroupModel:
    try:
        return GroupModel.model_validate({**document.data, "id": document.id})
    except ValidationError as e:
        logger.error(f"Group document {document.id} is unreadable: {e}")
        raise HTTPException(status_code=500, detail="Group data is unreadable")


class GroupService:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.users = UserService(store)

    # Reads

    def get_group(self, group_id: str) -> GroupModel:
        """Get group by ID"""
        document = self.store.get(GROUPS, group_id)
        if document is None:
            raise HTTPException(status_code=404, detail="Group not found")
        return decode_group(document)

    def find_group_by_code(self, code: str) -> Optional[GroupModel]:
        documents = self.store.query(GROUPS, filters=[("code", "==", code.strip().upper())], limit=1)
        if not documents:
            return None
        return decode_group(documents[0])

    def list_members(self, group_id: str) -> GroupMembersResponse:
        """Active members and pending requests, resolved to profiles"""
        group = self.get_group(group_id)
        return GroupMembersResponse(
            members=self.users.get_users(group.members),
            pending_members=self.users.get_users(group.pending_members),
        )

    def capabilities(self, group: GroupModel, user: UserModel) -> GroupCapabilities:
        """What the user may do in the group given its role and the group settings"""
        state = membership.membership_state(group, user.id)
        active = state == MembershipState.ACTIVE and user.group_id == group.id
        is_admin = active and user.role == UserRole.ADMIN
        is_manager = active and user.role in EDITOR_ROLES
        return GroupCapabilities(
            membership=state,
            is_admin=is_admin,
            is_manager=is_manager,
            can_create_events=is_manager or (active and group.settings.allow_members_to_create_events),
            can_create_setlists=is_manager or (active and group.settings.allow_members_to_create_setlists),
            can_invite_members=is_manager or (active and group.settings.allow_members_to_invite),
        )

    # Invite codes

    def generate_unique_code(self, exclude: Optional[str] = None) -> str:
        """
        Draw codes until one is not used by any group. The lookup and the
        later write are not atomic; concurrent creations may still collide.
        """
        attempts = app_settings.invite_code_max_attempts
        for attempt in range(1, attempts + 1):
            code = generate_invite_code(app_settings.invite_code_length)
            if code == exclude:
                continue
            if not self.store.query(GROUPS, filters=[("code", "==", code)], limit=1):
                return code
            logger.warning(f"Invite code collision (attempt {attempt}/{attempts})")
        raise HTTPException(status_code=503, detail="Could not generate a unique group code, please retry")

    # Transactions

    def _transition(self, group_id: str, mutate: Callable[[Transaction, GroupModel], object]):
        """
        Run a membership mutation in a transaction. The group document is
        staged first and always rewritten (bumping its version), so any two
        concurrent transitions on the same group conflict and are retried.
        """
        def txn_fn(txn: Transaction):
            document = txn.get(GROUPS, group_id)
            if document is None:
                raise HTTPException(status_code=404, detail="Group not found")
            group = decode_group(document)
            txn.set(GROUPS, group_id, group.to_document())
            result = mutate(txn, group)
            group.updated_at = datetime.now(timezone.utc)
            txn.set(GROUPS, group_id, group.to_document())
            return result

        try:
            return self.store.run_transaction(txn_fn)
        except MembershipError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except TransactionConflict:
            raise HTTPException(status_code=409, detail="Group was modified concurrently, please retry")

    @staticmethod
    def _read_user(txn: Transaction, user_id: str) -> UserModel:
        document = txn.get(USERS, user_id)
        user = decode_user(document) if document else None
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @staticmethod
    def _read_members(txn: Transaction, group: GroupModel) -> List[UserModel]:
        users = []
        for document in txn.get_all(USERS, group.members):
            user = decode_user(document)
            if user is not None:
                users.append(user)
        return users

    # Lifecycle

    def create_group(self, name: str, creator: UserModel) -> GroupModel:
        """Create a group with the creator as its first admin and default permissions"""
        code = self.generate_unique_code()
        group_id = str(uuid.uuid4())
        group = GroupModel(
            id=group_id,
            name=name,
            code=code,
            members=[creator.id],
            pending_members=[],
            settings=GroupSettings(),
            created_at=datetime.now(timezone.utc),
        )

        def txn_fn(txn: Transaction) -> GroupModel:
            user = self._read_user(txn, creator.id)
            if user.group_id:
                existing = txn.get(GROUPS, user.group_id)
                if existing is not None and membership.membership_state(decode_group(existing), user.id) != MembershipState.NONE:
                    raise MembershipError("Leave your current group before creating a new one")
            txn.set(GROUPS, group_id, group.to_document())
            txn.update(USERS, creator.id, {"group_id": group_id, "role": UserRole.ADMIN.value})
            permissions = default_permission_model(group_id)
            txn.set(PERMISSIONS, group_id, permissions.to_document())
            return group

        try:
            created = self.store.run_transaction(txn_fn)
        except MembershipError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except TransactionConflict:
            raise HTTPException(status_code=409, detail="Profile was modified concurrently, please retry")
        logger.info(f"Group {group_id} created by {creator.id}")
        return created

    def update_name(self, group_id: str, name: str) -> GroupModel:
        name = name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Group name is required")
        document = self.store.update(GROUPS, group_id, {"name": name, "updated_at": _now()})
        if document is None:
            raise HTTPException(status_code=404, detail="Group not found")
        return decode_group(document)

    def update_settings(self, group_id: str, new_settings: GroupSettings) -> GroupModel:
        document = self.store.update(GROUPS, group_id, {
            "settings": new_settings.model_dump(mode="json"),
            "updated_at": _now()
        })
        if document is None:
            raise HTTPException(status_code=404, detail="Group not found")
        return decode_group(document)

    def reset_settings(self, group_id: str) -> GroupModel:
        return self.update_settings(group_id, GroupSettings())

    def regenerate_code(self, group_id: str) -> GroupModel:
        """Replace the invite code; the old code stops working immediately"""
        current = self.get_group(group_id)
        code = self.generate_unique_code(exclude=current.code)
        document = self.store.update(GROUPS, group_id, {"code": code, "updated_at": _now()})
        if document is None:
            raise HTTPException(status_code=404, detail="Group not found")
        logger.info(f"Group {group_id} invite code regenerated")
        return decode_group(document)

    def delete_group(self, group_id: str, requester: UserModel) -> None:
        """
        Delete the group and clear the group pointer of every member and
        pending member. Refused while the requester is the only admin and
        other members remain.
        """
        def txn_fn(txn: Transaction) -> None:
            document = txn.get(GROUPS, group_id)
            if document is None:
                raise HTTPException(status_code=404, detail="Group not found")
            group = decode_group(document)
            members = self._read_members(txn, group)
            if membership.admin_count(group, members) <= 1 and len(group.members) > 1:
                raise MembershipError(
                    "You are the only admin of this group. Assign another admin before deleting the group."
                )
            txn.delete(GROUPS, group_id)
            for user_id in dict.fromkeys(group.members + group.pending_members):
                user_document = txn.get(USERS, user_id)
                if user_document is not None and user_document.get("group_id") == group_id:
                    txn.update(USERS, user_id, {"group_id": DELETE_FIELD, "role": UserRole.MEMBER.value})
            if txn.get(PERMISSIONS, group_id) is not None:
                txn.delete(PERMISSIONS, group_id)

        try:
            self.store.run_transaction(txn_fn)
        except MembershipError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except TransactionConflict:
            raise HTTPException(status_code=409, detail="Group was modified concurrently, please retry")
        get_permission_cache(self.store).invalidate(group_id)
        logger.info(f"Group {group_id} deleted by {requester.id}")

    # Membership transitions

    def _request_join(self, group_id: str, user_id: str) -> GroupModel:
        def mutate(txn: Transaction, group: GroupModel) -> GroupModel:
            user = self._read_user(txn, user_id)
            if user.group_id and user.group_id != group.id:
                other = txn.get(GROUPS, user.group_id)
                if other is not None and membership.membership_state(decode_group(other), user.id) != MembershipState.NONE:
                    raise MembershipError("User already belongs to another group")
                user.group_id = None
            membership.request_join(group, user)
            txn.update(USERS, user_id, {"group_id": group.id, "role": UserRole.MEMBER.value})
            return group

        group = self._transition(group_id, mutate)
        logger.info(f"User {user_id} requested to join group {group_id}")
        return group

    def join_group(self, code: str, user: UserModel) -> GroupModel:
        """NONE -> PENDING using an invite code"""
        group = self.find_group_by_code(code)
        if group is None:
            raise HTTPException(status_code=404, detail="No group found with this code")
        return self._request_join(group.id, user.id)

    def invite_by_email(self, group_id: str, email: str) -> GroupModel:
        """NONE -> PENDING for the user registered with this email"""
        user = self.users.find_user_by_email(email)
        if user is None:
            raise HTTPException(status_code=404, detail="No user found with this email")
        return self._request_join(group_id, user.id)

    def approve_member(self, group_id: str, user_id: str) -> GroupModel:
        """PENDING -> ACTIVE"""
        def mutate(txn: Transaction, group: GroupModel) -> GroupModel:
            membership.approve(group, user_id)
            user_document = txn.get(USERS, user_id)
            if user_document is not None and user_document.get("group_id") != group.id:
                txn.update(USERS, user_id, {"group_id": group.id, "role": UserRole.MEMBER.value})
            return group

        group = self._transition(group_id, mutate)
        logger.info(f"User {user_id} approved in group {group_id}")
        return group

    def _drop_pending(self, group_id: str, user_id: str) -> GroupModel:
        def mutate(txn: Transaction, group: GroupModel) -> GroupModel:
            membership.reject(group, user_id)
            user_document = txn.get(USERS, user_id)
            if user_document is not None and user_document.get("group_id") == group.id:
                txn.update(USERS, user_id, {"group_id": DELETE_FIELD})
            return group

        return self._transition(group_id, mutate)

    def reject_member(self, group_id: str, user_id: str) -> GroupModel:
        """PENDING -> NONE by an admin"""
        group = self._drop_pending(group_id, user_id)
        logger.info(f"User {user_id} rejected from group {group_id}")
        return group

    def cancel_request(self, group_id: str, user: UserModel) -> GroupModel:
        """PENDING -> NONE by the requesting user"""
        group = self._drop_pending(group_id, user.id)
        logger.info(f"User {user.id} cancelled the join request to group {group_id}")
        return group

    def remove_member(self, group_id: str, user_id: str) -> GroupModel:
        """ACTIVE -> NONE; refused for the only admin"""
        def mutate(txn: Transaction, group: GroupModel) -> GroupModel:
            members = self._read_members(txn, group)
            membership.remove(group, members, user_id)
            user_document = txn.get(USERS, user_id)
            if user_document is not None and user_document.get("group_id") == group.id:
                txn.update(USERS, user_id, {"group_id": DELETE_FIELD, "role": UserRole.MEMBER.value})
            return group

        group = self._transition(group_id, mutate)
        logger.info(f"User {user_id} removed from group {group_id}")
        return group

    def leave_group(self, group_id: str, user: UserModel) -> GroupModel:
        return self.remove_member(group_id, user.id)

    def change_role(self, group_id: str, user_id: str, new_role: UserRole) -> UserModel:
        """Change an active member's role; refused when it would demote the only admin"""
        def mutate(txn: Transaction, group: GroupModel) -> UserModel:
            members = self._read_members(txn, group)
            self._read_user(txn, user_id)
            membership.change_role(group, members, user_id, new_role)
            txn.update(USERS, user_id, {"group_id": group.id, "role": new_role.value})
            user = self._read_user(txn, user_id)
            return user

        user = self._transition(group_id, mutate)
        logger.info(f"User {user_id} in group {group_id} is now {new_role.value}")
        return user
