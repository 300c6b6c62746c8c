import hashlib
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
from fastapi import HTTPException
from supabase import Client

logger = logging.getLogger(__name__)

# In-memory cache for get_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


@dataclass
class AuthSession:
    access_token: str
    user_id: str
    email: str


class AuthProvider(ABC):
    @abstractmethod
    def register(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Create an account and return its user id"""

    @abstractmethod
    def login(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    def reset_password(self, email: str) -> None:
        ...

    @abstractmethod
    def logout(self, token: str) -> None:
        ...

    @abstractmethod
    def get_user(self, token: str) -> Dict[str, Any]:
        """Resolve an access token to {"id", "email", ...}; raises 401 when invalid"""

    def current_user_id(self, token: str) -> str:
        return self.get_user(token)["id"]


class SupabaseAuthProvider(AuthProvider):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Register a new user using Supabase Auth"""
        try:
            auth_response = self.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {
                    "data": metadata or {}
                }
            })

            if not auth_response.user:
                raise HTTPException(status_code=400, detail="Failed to register user")

            return auth_response.user.id
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            logger.error(f"Registration failed for {email}: {error_message}")
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

    def login(self, email: str, password: str) -> AuthSession:
        """Authenticate user using Supabase Auth"""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password
            })

            if not auth_response.user or not auth_response.session:
                raise HTTPException(status_code=401, detail="Invalid credentials")

            return AuthSession(
                access_token=auth_response.session.access_token,
                user_id=auth_response.user.id,
                email=auth_response.user.email or email
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            logger.warning(f"Login failed for {email}: {error_message}")
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            raise HTTPException(status_code=500, detail=f"Login failed: {error_message}")

    def reset_password(self, email: str) -> None:
        """Send a password reset email"""
        try:
            self.supabase.auth.reset_password_for_email(email)
        except Exception as e:
            logger.error(f"Password reset failed for {email}: {e}")
            raise HTTPException(status_code=500, detail=f"Password reset failed: {e}")

    def logout(self, token: str) -> None:
        """Logout user using Supabase Auth"""
        # Supabase Auth tokens are stateless JWTs, so logout is mainly client-side
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            self.supabase.auth.sign_out()
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")

    def get_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")
