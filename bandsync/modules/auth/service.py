import logging
from bandsync.modules.auth.provider import AuthProvider
from bandsync.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from bandsync.modules.users.service import UserService

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, provider: AuthProvider, users: UserService):
        self.provider = provider
        self.users = users

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Create the auth account, then the matching profile document"""
        user_id = self.provider.register(
            register_data.email,
            register_data.password,
            {"name": register_data.name},
        )
        self.users.create_profile(
            user_id,
            register_data.email,
            name=register_data.name,
            phone=register_data.phone,
        )
        logger.info(f"Registered user {user_id}")
        return RegisterResponse(
            user_id=user_id,
            email=register_data.email,
            message="User registered successfully"
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate, then make sure a readable profile exists"""
        session = self.provider.login(login_data.email, login_data.password)
        user = self.users.ensure_user_exists(session.user_id, session.email)
        logger.info(f"User {user.id} logged in (role: {user.role.value})")
        return TokenResponse(
            access_token=session.access_token,
            user_id=user.id,
            email=user.email,
            group_id=user.group_id,
            role=user.role,
        )

    def reset_password(self, email: str) -> None:
        self.provider.reset_password(email)

    def logout(self, token: str) -> None:
        self.provider.logout(token)
