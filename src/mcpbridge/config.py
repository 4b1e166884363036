"""Configuration settings for the bridge."""

import sys
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the bridge."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: List[str] = [
        "http://localhost:3001",
        "http://localhost:3003",
        "http://127.0.0.1:3001",
        "http://127.0.0.1:3003",
    ]

    # LLM Configuration
    LLM_BACKEND: str = "ollama"  # Options: ollama, openai, anthropic
    OLLAMA_URL: str = "http://127.0.0.1:11434"
    OLLAMA_MODEL: str = "gemma3:4b"
    OLLAMA_CHAT_ENDPOINT: str = "/api/chat"
    OLLAMA_TAGS_ENDPOINT: str = "/api/tags"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    LLM_TIMEOUT: float = 60.0

    # Tool provider (MCP server spawned over stdio)
    MCP_SERVER_COMMAND: str = sys.executable  # interpreter that runs the bridge
    MCP_SERVER_ARGS: List[str] = ["-m", "mcpbridge.tools.server"]
    MCP_CONNECT_TIMEOUT: float = 5.0
    SERVICE_BASE_URL: str = "http://localhost:3000"  # Backend hit by the service tools

    # Conversation memory
    HISTORY_LIMIT: int = 20
    PROMPT_HISTORY: int = 10
    DEFAULT_CONVERSATION_ID: str = "default"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
