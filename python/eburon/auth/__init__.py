"""Authentication module.

Provides the Supabase email/password client and the AuthSession it yields.
"""

from eburon.auth.client import AuthSession, SupabaseAuthClient

__all__ = [
    "AuthSession",
    "SupabaseAuthClient",
]
