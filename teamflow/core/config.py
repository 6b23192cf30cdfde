# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service settings, read once from the environment.
"""

import os


def _parse_static_tokens(raw: str) -> dict[str, dict[str, str]]:
    """Parse ``token=userId:Role[:active]`` pairs into raw claim dicts."""
    tokens: dict[str, dict[str, str]] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if "=" not in pair:
            continue
        token, entry = pair.split("=", 1)
        parts = [p.strip() for p in entry.split(":")]
        if len(parts) < 2:
            continue
        claims = {"sub": parts[0], "role": parts[1]}
        claims["active"] = parts[2] if len(parts) > 2 else "true"
        tokens[token.strip()] = claims
    return tokens


class Settings:
    """Environment-driven settings; defaults suit a local in-memory run."""

    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "teamflow-orchestrator")
    SERVICE_VERSION: str = os.getenv("SERVICE_VERSION", "1.0.0")
    SERVICE_PORT: int = int(os.getenv("SERVICE_PORT", "8010"))

    # Stores
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory").lower()
    ACCOUNT_SERVICE_URL: str = os.getenv("ACCOUNT_SERVICE_URL", "http://account-service:8011")
    TEAM_SERVICE_URL: str = os.getenv("TEAM_SERVICE_URL", "http://team-service:8012")
    TASK_SERVICE_URL: str = os.getenv("TASK_SERVICE_URL", "http://task-service:8013")
    BLOB_SERVICE_URL: str = os.getenv("BLOB_SERVICE_URL", "http://blob-service:8014")
    STORE_TIMEOUT: float = float(os.getenv("STORE_TIMEOUT", "3.0"))
    BLOB_TIMEOUT: float = float(os.getenv("BLOB_TIMEOUT", "30.0"))
    MAX_ATTACHMENT_BYTES: int = int(os.getenv("MAX_ATTACHMENT_BYTES", str(10 * 1024 * 1024)))

    # Identity
    IDENTITY_BACKEND: str = os.getenv("IDENTITY_BACKEND", "static").lower()
    IDENTITY_SERVICE_URL: str = os.getenv("IDENTITY_SERVICE_URL", ACCOUNT_SERVICE_URL)
    IDENTITY_TIMEOUT: float = float(os.getenv("IDENTITY_TIMEOUT", "3.0"))
    STATIC_TOKENS: dict[str, dict[str, str]] = _parse_static_tokens(
        os.getenv("STATIC_TOKENS", "")
    )

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
