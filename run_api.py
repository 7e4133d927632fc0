"""
Run the agentic product search REST API.

Usage:
    python run_api.py

Environment variables (all optional, see infrastructure/config.py):
    LLM_PROVIDER              "openai", "groq" or "ollama" (default: openai)
    OPENAI_API_KEY            Required when LLM_PROVIDER=openai
    GROQ_API_KEY              Required when LLM_PROVIDER=groq
    SERPAPI_KEY               SerpAPI key for the Amazon engine
    AMAZON_PARTNER_TAG        Affiliate tag appended to product links
    DB_PATH                   SQLite database file path (default: search.db)
    JWT_SECRET                Secret for user Bearer tokens
    ANON_JWT_SECRET           Secret for guest X-Anon-Token tokens
    RATE_LIMIT_AUTHENTICATED  Searches per window for users (default: 20)
    RATE_LIMIT_ANONYMOUS      Searches per window for guests (default: 5)
    LOG_LEVEL                 Root log level (default: INFO)
    API_HOST / API_PORT       Bind address (default: 0.0.0.0:8000)
"""

import logging
import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "adapters.rest.app:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
    )
