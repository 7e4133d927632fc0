"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment or passed
explicitly in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the agentic search service.

    No module-level globals; construct via from_env() or pass explicitly
    in tests.
    """
    project_root: Path

    # ── Centralized LLM Provider ────────────────────────────────
    # Allowed: "openai", "groq", "ollama"
    llm_provider: str = "openai"

    # Model names: only the one matching llm_provider is used.
    llm_model_openai: str = "gpt-4.1-mini"
    llm_model_groq: str = "llama-3.3-70b-versatile"
    llm_model_ollama: str = "llama3.2"

    # Connection details
    ollama_base_url: str = "http://localhost:11434/"
    groq_api_key: str = ""
    openai_api_key: str = ""
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0

    # Agent
    agent_max_loops: int = 3
    tool_summary_limit: int = 10

    # Product search (SerpAPI Amazon engine)
    serpapi_key: str = ""
    amazon_partner_tag: str = "luminasoftwar-20"
    default_country: str = "US"
    search_timeout_seconds: float = 20.0

    # Database
    db_path: str = "search.db"

    # Identity
    jwt_secret: str = "change-me-in-production"
    anon_jwt_secret: str = "change-me-too"

    # Rate limiting: one shared quota for image and text searches
    rate_limit_authenticated: int = 20
    rate_limit_anonymous: int = 5
    rate_limit_window_seconds: int = 7 * 24 * 60 * 60

    # HTTP
    cors_allow_origins: str = "*"
    log_level: str = "INFO"

    @property
    def active_llm_model(self) -> str:
        """Return the model name for the currently active LLM provider."""
        if self.llm_provider == "groq":
            return self.llm_model_groq
        elif self.llm_provider == "ollama":
            return self.llm_model_ollama
        return self.llm_model_openai

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from environment variables (and a .env file if present)."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent

        return cls(
            project_root=root,

            llm_provider=os.getenv("LLM_PROVIDER", "openai"),
            llm_model_openai=os.getenv("LLM_MODEL_OPENAI", "gpt-4.1-mini"),
            llm_model_groq=os.getenv("LLM_MODEL_GROQ", "llama-3.3-70b-versatile"),
            llm_model_ollama=os.getenv("LLM_MODEL_OLLAMA", "llama3.2"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),

            agent_max_loops=int(os.getenv("AGENT_MAX_LOOPS", "3")),
            tool_summary_limit=int(os.getenv("TOOL_SUMMARY_LIMIT", "10")),

            serpapi_key=os.getenv("SERPAPI_KEY", ""),
            amazon_partner_tag=os.getenv("AMAZON_PARTNER_TAG", "luminasoftwar-20"),
            default_country=os.getenv("DEFAULT_COUNTRY", "US"),
            search_timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", "20")),

            db_path=os.getenv("DB_PATH", str(root / "search.db")),

            jwt_secret=os.getenv("JWT_SECRET", "change-me-in-production"),
            anon_jwt_secret=os.getenv("ANON_JWT_SECRET", "change-me-too"),

            rate_limit_authenticated=int(os.getenv("RATE_LIMIT_AUTHENTICATED", "20")),
            rate_limit_anonymous=int(os.getenv("RATE_LIMIT_ANONYMOUS", "5")),
            rate_limit_window_seconds=int(
                os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(7 * 24 * 60 * 60))
            ),

            cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
