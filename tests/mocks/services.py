"""
Fake collaborators for tests: auth provider, push notifier and push sender.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from bandsync.modules.auth.provider import AuthProvider, AuthSession
from bandsync.modules.notifications.schemas import ScheduledNotification
from bandsync.modules.notifications.notifier import PushNotifier


class FakeAuthProvider(AuthProvider):
    """Accounts kept in memory; the access token is "token-<user id>"."""

    def __init__(self):
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.reset_requests: List[str] = []
        self.logged_out: List[str] = []

    def register(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        if any(a["email"] == email for a in self.accounts.values()):
            raise HTTPException(status_code=400, detail="User already exists")
        user_id = uuid.uuid4().hex
        self.accounts[user_id] = {"email": email, "password": password, "metadata": metadata or {}}
        return user_id

    def login(self, email: str, password: str) -> AuthSession:
        for user_id, account in self.accounts.items():
            if account["email"] == email and account["password"] == password:
                return AuthSession(access_token=self.token_for(user_id), user_id=user_id, email=email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    def reset_password(self, email: str) -> None:
        self.reset_requests.append(email)

    def logout(self, token: str) -> None:
        self.logged_out.append(token)

    def get_user(self, token: str) -> Dict[str, Any]:
        user_id = token[len("token-"):] if token.startswith("token-") else None
        if user_id not in self.accounts or token in self.logged_out:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return {"id": user_id, "email": self.accounts[user_id]["email"], "user_metadata": {}}

    @staticmethod
    def token_for(user_id: str) -> str:
        return f"token-{user_id}"


class RecordingPushNotifier(PushNotifier):
    def __init__(self):
        self.scheduled: Dict[str, ScheduledNotification] = {}
        self.cancelled: List[str] = []

    def schedule(
        self,
        identifier: str,
        title: str,
        body: str,
        fire_at: datetime,
        recipients: List[str],
        group_id: Optional[str] = None,
    ) -> ScheduledNotification:
        notification = ScheduledNotification(
            id=identifier, title=title, body=body, fire_at=fire_at, recipients=recipients, group_id=group_id
        )
        self.scheduled[identifier] = notification
        return notification

    def cancel(self, identifier: str) -> bool:
        self.cancelled.append(identifier)
        return self.scheduled.pop(identifier, None) is not None


class RecordingPushSender:
    def __init__(self, fail: bool = False):
        self.sent: List[ScheduledNotification] = []
        self.fail = fail

    def send(self, notification: ScheduledNotification) -> None:
        if self.fail:
            raise RuntimeError("push backend unavailable")
        self.sent.append(notification)
