"""
factory - Composition root for the agentic product search service.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (REST, CLI) call this factory to get fully
configured services.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    service = factory.create_agent_search_service()
    async for event in service.stream(identity, SearchRequest(query="...")):
        ...

Tests pass a scripted chat model and a fake search provider instead of the
LangChain and SerpAPI implementations.
"""

from __future__ import annotations

import logging
from typing import Optional

from infrastructure.config import Settings
from infrastructure.auth.identity import JWTIdentityResolver
from infrastructure.llm.chat_model import LangChainChatModel
from infrastructure.llm.llm_builder import build_llm_from_settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.conversation_repo import SQLiteConversationRepository
from infrastructure.persistence.message_repo import SQLiteMessageRepository
from infrastructure.persistence.category_repo import SQLiteCategoryRepository
from infrastructure.persistence.product_repo import SQLiteProductRepository
from infrastructure.persistence.rate_limit_repo import SQLiteRateLimitRepository
from infrastructure.persistence.analytics_repo import SQLiteAnalyticsRepository
from infrastructure.search.amazon_serpapi import AmazonSerpApiProvider
from application.services.agent_search import AgentSearchService
from application.services.conversations import ConversationService
from application.services.rate_limiter import RateLimiter
from application.services.search_persistence import SearchPersistenceService
from agent.tools.registry import ToolRegistry
from agent.tools.search_products import SearchProductsTool
from agent.dispatcher import ToolDispatcher
from agent.prompt import build_system_prompt
from agent.executor import AgentExecutor
from domain.ports import ChatModelPort, SearchProviderPort

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root: wires all dependencies together.

    Call initialize() once at startup, then create services as needed.
    """

    def __init__(
        self,
        config: Settings,
        chat_model: Optional[ChatModelPort] = None,
        search_provider: Optional[SearchProviderPort] = None,
    ):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._chat_model = chat_model
        self._search_provider = search_provider
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: run migrations.

        Must be called before creating services.
        """
        logger.info("Initializing ServiceFactory...")
        await run_migrations(self._connection)
        logger.info("Database migrations complete")
        self._initialized = True
        logger.info("ServiceFactory ready")

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_agent_search_service(self) -> AgentSearchService:
        """Create the streaming search orchestrator with all dependencies wired."""
        self._ensure_initialized()
        registry = self.create_tool_registry()
        executor = AgentExecutor(
            chat_model=self._get_chat_model(),
            tools=registry,
            dispatcher=ToolDispatcher(registry),
            max_loops=self._config.agent_max_loops,
        )
        return AgentSearchService(
            executor=executor,
            persistence=self.create_search_persistence_service(),
            rate_limiter=self.create_rate_limiter(),
            system_prompt=build_system_prompt(registry),
        )

    def create_search_persistence_service(self) -> SearchPersistenceService:
        return SearchPersistenceService(
            conversation_repo=SQLiteConversationRepository(self._connection),
            message_repo=SQLiteMessageRepository(self._connection),
            category_repo=SQLiteCategoryRepository(self._connection),
            product_repo=SQLiteProductRepository(self._connection),
            analytics_repo=SQLiteAnalyticsRepository(self._connection),
        )

    def create_conversation_service(self) -> ConversationService:
        return ConversationService(
            conversation_repo=SQLiteConversationRepository(self._connection),
            message_repo=SQLiteMessageRepository(self._connection),
            category_repo=SQLiteCategoryRepository(self._connection),
            product_repo=SQLiteProductRepository(self._connection),
        )

    def create_rate_limiter(self) -> RateLimiter:
        return RateLimiter(
            repo=SQLiteRateLimitRepository(self._connection),
            authenticated_limit=self._config.rate_limit_authenticated,
            anonymous_limit=self._config.rate_limit_anonymous,
            window_seconds=self._config.rate_limit_window_seconds,
        )

    def create_identity_resolver(self) -> JWTIdentityResolver:
        return JWTIdentityResolver(
            jwt_secret=self._config.jwt_secret,
            anon_jwt_secret=self._config.anon_jwt_secret,
        )

    def create_tool_registry(self) -> ToolRegistry:
        registry = ToolRegistry()
        registry.register(SearchProductsTool(
            provider=self._get_search_provider(),
            summary_limit=self._config.tool_summary_limit,
        ))
        return registry

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_chat_model(self) -> ChatModelPort:
        if self._chat_model is None:
            self._chat_model = LangChainChatModel(build_llm_from_settings(self._config))
        return self._chat_model

    def _get_search_provider(self) -> SearchProviderPort:
        if self._search_provider is None:
            if not self._config.serpapi_key:
                logger.warning("SERPAPI_KEY is not set, product searches will fail")
            self._search_provider = AmazonSerpApiProvider(
                api_key=self._config.serpapi_key,
                partner_tag=self._config.amazon_partner_tag,
                default_country=self._config.default_country,
                timeout=self._config.search_timeout_seconds,
            )
        return self._search_provider

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
