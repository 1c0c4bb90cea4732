"""Centralized configuration for the MCP Store router."""

import os


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """
    Router configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    @staticmethod
    def _parse_port(port_str: str) -> int:
        """Parse and validate port number from string."""
        try:
            port = int(port_str)
            if not (1 <= port <= 65535):
                raise ValueError(f"Port must be 1-65535, got {port}")
            return port
        except ValueError as e:
            raise ValueError(f"Invalid PORT environment variable: {e}")

    # ========================================================================
    # Server Configuration
    # ========================================================================
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _parse_port.__func__(os.getenv("PORT", "8001"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "router.log")
    REGISTRY_YAML_PATH: str = os.getenv("REGISTRY_YAML_PATH", "")

    # ========================================================================
    # Cache Configuration
    # ========================================================================
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "memory")  # "memory" | "redis"
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "300"))  # 5 minutes
    CACHE_KEY_PREFIX: str = "route:"

    # ========================================================================
    # Redis Configuration
    # ========================================================================
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_MAX_CONNECTIONS: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "100"))
    REDIS_SOCKET_CONNECT_TIMEOUT: float = float(
        os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "2")
    )
    REDIS_SOCKET_TIMEOUT: float = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))
    REDIS_CONNECT_RETRIES: int = int(os.getenv("REDIS_CONNECT_RETRIES", "3"))
    REDIS_CONNECT_RETRY_DELAY: float = float(os.getenv("REDIS_CONNECT_RETRY_DELAY", "0.5"))
    REDIS_CONNECT_RETRY_MAX_DELAY: float = float(
        os.getenv("REDIS_CONNECT_RETRY_MAX_DELAY", "4")
    )

    # ========================================================================
    # Retrieval & Ranking
    # ========================================================================
    NARROW_LIMIT: int = int(os.getenv("NARROW_LIMIT", "10"))
    EXPANDED_LIMIT: int = int(os.getenv("EXPANDED_LIMIT", "15"))
    BROAD_LIMIT: int = int(os.getenv("BROAD_LIMIT", "20"))
    MAX_EXPANSION_TERMS: int = 5
    CASCADE_WINDOW: int = int(os.getenv("CASCADE_WINDOW", "3"))
    MAX_ALTERNATIVES: int = 2

    # ========================================================================
    # Protocol Client
    # ========================================================================
    PROTOCOL_VERSION: str = os.getenv("PROTOCOL_VERSION", "2024-11-05")
    CLIENT_NAME: str = "mcp-store-router"
    CLIENT_VERSION: str = "0.1.0"
    SESSION_HEADER: str = os.getenv("SESSION_HEADER", "Mcp-Session-Id")
    HANDSHAKE_HOSTS: list[str] = _split_csv(
        os.getenv("HANDSHAKE_HOSTS", "server.smithery.ai")
    )
    CONNECT_TIMEOUT: float = float(os.getenv("CONNECT_TIMEOUT", "10"))
    CALL_TIMEOUT: float = float(os.getenv("CALL_TIMEOUT", "45"))
    HANDSHAKE_TIMEOUT: float = float(os.getenv("HANDSHAKE_TIMEOUT", "30"))
    STREAM_CHUNK_TIMEOUT: float = float(os.getenv("STREAM_CHUNK_TIMEOUT", "5"))
    STREAM_TOTAL_TIMEOUT: float = float(os.getenv("STREAM_TOTAL_TIMEOUT", "25"))
    CREDENTIAL_ENV_PREFIX: str = "MCP_STORE_TOKEN_"

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Checks:
        - Cache backend is known and TTL is positive
        - Retrieval limits and cascade window are positive
        - Protocol timeouts are positive and the stream deadlines nest

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if cls.CACHE_BACKEND not in ("memory", "redis"):
            errors.append(
                f"CACHE_BACKEND must be 'memory' or 'redis', got '{cls.CACHE_BACKEND}'"
            )
        if cls.CACHE_TTL_SECONDS <= 0:
            errors.append(f"CACHE_TTL_SECONDS must be > 0, got {cls.CACHE_TTL_SECONDS}")

        for name in ("NARROW_LIMIT", "EXPANDED_LIMIT", "BROAD_LIMIT", "CASCADE_WINDOW"):
            value = getattr(cls, name)
            if value <= 0:
                errors.append(f"{name} must be > 0, got {value}")

        for name in (
            "CONNECT_TIMEOUT",
            "CALL_TIMEOUT",
            "HANDSHAKE_TIMEOUT",
            "STREAM_CHUNK_TIMEOUT",
            "STREAM_TOTAL_TIMEOUT",
        ):
            value = getattr(cls, name)
            if value <= 0:
                errors.append(f"{name} must be > 0, got {value}")

        if cls.STREAM_CHUNK_TIMEOUT > cls.STREAM_TOTAL_TIMEOUT:
            errors.append(
                "STREAM_CHUNK_TIMEOUT must not exceed STREAM_TOTAL_TIMEOUT "
                f"({cls.STREAM_CHUNK_TIMEOUT} > {cls.STREAM_TOTAL_TIMEOUT})"
            )

        if cls.REDIS_MAX_CONNECTIONS <= 0:
            errors.append(
                f"REDIS_MAX_CONNECTIONS must be > 0, got {cls.REDIS_MAX_CONNECTIONS}"
            )
        if cls.REDIS_CONNECT_RETRIES <= 0:
            errors.append(
                f"REDIS_CONNECT_RETRIES must be > 0, got {cls.REDIS_CONNECT_RETRIES}"
            )

        if not cls.SESSION_HEADER.strip():
            errors.append("SESSION_HEADER must not be empty")

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
