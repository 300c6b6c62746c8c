import random
import string
from typing import Any, Dict, Optional

from fastapi.testclient import TestClient

from bandsync.config.permissions_config import UserRole
from bandsync.database.document_store import DocumentStore, USERS

API = "/api/v1"


def random_string(length: int = 8) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def register_and_login(client: TestClient, name: Optional[str] = None, password: str = "secret123") -> Dict[str, Any]:
    """Register a fresh account and return its id, email and auth headers"""
    email = f"{random_string()}@example.com"
    response = client.post(f"{API}/auth/register", json={
        "email": email, "password": password, "name": name or email.split("@")[0]
    })
    assert response.status_code == 201, response.text
    response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    token = response.json()
    return {
        "id": token["user_id"],
        "email": email,
        "headers": {"Authorization": f"Bearer {token['access_token']}"},
    }


def create_group(client: TestClient, headers: Dict[str, str], name: str = "The Band") -> Dict[str, Any]:
    response = client.post(f"{API}/groups", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def add_member(
    client: TestClient,
    admin_headers: Dict[str, str],
    group: Dict[str, Any],
    user: Dict[str, Any],
    role: Optional[UserRole] = None,
) -> None:
    """Join with the group code, get approved and optionally get a role"""
    response = client.post(f"{API}/groups/join", json={"code": group["code"]}, headers=user["headers"])
    assert response.status_code == 200, response.text
    response = client.post(f"{API}/groups/{group['id']}/members/{user['id']}/approve", headers=admin_headers)
    assert response.status_code == 200, response.text
    if role is not None:
        response = client.put(
            f"{API}/groups/{group['id']}/members/{user['id']}/role",
            json={"role": role.value},
            headers=admin_headers,
        )
        assert response.status_code == 200, response.text


def make_user(store: DocumentStore, user_id: str, role: UserRole = UserRole.MEMBER, group_id: Optional[str] = None) -> None:
    """Write a user profile straight into the store"""
    data = {"email": f"{user_id}@example.com", "name": user_id, "phone": "", "role": role.value}
    if group_id:
        data["group_id"] = group_id
    store.set(USERS, user_id, data)
