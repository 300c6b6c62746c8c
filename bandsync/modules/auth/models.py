# Supabase Auth
# This module uses Supabase's built-in authentication system behind the
# AuthProvider contract (provider.py). No custom tables are required -
# Supabase Auth handles:
# - User registration (auth.users table)
# - User login and session management
# - JWT token generation and validation
# - Password reset emails

"""
AuthProvider contract:
- register(email, password, metadata) -> user id
- login(email, password) -> AuthSession(access_token, user_id, email)
- reset_password(email) - sends a reset email
- logout(token)
- get_user(token) -> {"id", "email", ...}
- current_user_id(token) -> user id

Profile data (name, phone, group, role) lives in the "users" document
collection, keyed by the auth user id.
"""
