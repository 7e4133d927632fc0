"""
Run the agentic product search CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    search          Stream an agentic product search from a running API
    conversations   List your conversations
    guest-token     Mint a guest token for local use
    init-db         Create the SQLite schema

Examples:
    python run_cli.py init-db
    python run_cli.py guest-token --save
    python run_cli.py search "wireless earbuds under 50 dollars"

Environment variables (all optional):
    SEARCH_API_URL      Base URL of the API (default: http://localhost:8000)
    ANON_JWT_SECRET     Must match the API to mint usable guest tokens
    DB_PATH             SQLite database file path (default: search.db)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    app()
