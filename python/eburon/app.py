"""Workspace assembly.

Builds every per-user component from settings and one shared
httpx.AsyncClient. Components are owned by the Workspace and injected into
callers explicitly; nothing here is module-level global state.

Client Lifecycle:
- The caller owns the httpx.AsyncClient (create at startup, close at shutdown)
- GeminiGateway, row store, blob store and auth client share it for pooling
- A Workspace is created per signed-in user because data requests carry that
  user's access token
"""

from dataclasses import dataclass

import httpx

from eburon.auth.client import AuthSession, SupabaseAuthClient
from eburon.config import Settings, get_settings
from eburon.db.client import SupabaseRowStore
from eburon.logging import configure_logging, get_logger
from eburon.services.knowledge import load_knowledge_text
from eburon.services.llm.chat import ConversationContext
from eburon.services.llm.gateway import GeminiGateway
from eburon.services.media import MediaConsistencyManager
from eburon.services.session import SessionStateManager
from eburon.services.tools import ToolService
from eburon.storage.client import SupabaseBlobStore

logger = get_logger(__name__)


@dataclass
class Workspace:
    """Every component a signed-in user's tools need."""

    settings: Settings
    auth: AuthSession
    gateway: GeminiGateway
    chat: SessionStateManager
    media: MediaConsistencyManager
    tools: ToolService

    @property
    def user_id(self) -> str:
        return self.auth.user_id

    def knowledge_text(self) -> str:
        return load_knowledge_text(self.settings.knowledge_base_path)

    async def open_chat(self) -> ConversationContext:
        """Initialize the chat session with history and the knowledge base."""
        return await self.chat.init_session(self.user_id, self.knowledge_text())

    async def clear_chat(self) -> ConversationContext:
        """Clear durable history and restart the chat session."""
        return await self.chat.reset_history(self.user_id, self.knowledge_text())


def create_auth_client(client: httpx.AsyncClient, settings: Settings | None = None) -> SupabaseAuthClient:
    """Create the Supabase auth client used to obtain an AuthSession."""
    settings = settings or get_settings()
    return SupabaseAuthClient(
        client,
        supabase_url=settings.normalized_supabase_url,
        api_key=settings.supabase_anon_key or "",
        timeout_s=settings.supabase_timeout_s,
    )


def create_workspace(
    client: httpx.AsyncClient,
    auth: AuthSession,
    settings: Settings | None = None,
) -> Workspace:
    """Wire gateway, stores and services for one signed-in user.

    Args:
        client: Shared HTTP client (owned by the caller).
        auth: Session from SupabaseAuthClient.sign_in().
        settings: Settings override; defaults to get_settings().
    """
    settings = settings or get_settings()
    configure_logging(json_format=not settings.is_dev)

    gateway = GeminiGateway(
        client,
        api_key=settings.gemini_api_key or "",
        base_url=settings.gemini_base_url,
        timeout_s=settings.gemini_timeout_s,
    )
    rows = SupabaseRowStore(
        client,
        supabase_url=settings.normalized_supabase_url,
        api_key=settings.supabase_anon_key or "",
        access_token=auth.access_token,
        timeout_s=settings.supabase_timeout_s,
    )
    blobs = SupabaseBlobStore(
        client,
        supabase_url=settings.normalized_supabase_url,
        api_key=settings.supabase_anon_key or "",
        access_token=auth.access_token,
        bucket=settings.storage_bucket,
        timeout_s=settings.supabase_timeout_s,
    )

    logger.info("workspace.created", env=settings.eburon_env.value)
    return Workspace(
        settings=settings,
        auth=auth,
        gateway=gateway,
        chat=SessionStateManager(
            gateway,
            rows,
            model_name=settings.chat_model,
            history_table=settings.chat_history_table,
        ),
        media=MediaConsistencyManager(
            rows,
            blobs,
            table=settings.images_table,
            signed_url_expiry_s=settings.signed_url_expiry_s,
        ),
        tools=ToolService(gateway, settings),
    )
