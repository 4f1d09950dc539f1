"""Configuration management for the PostgreSQL MCP server."""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# 載入 .env 檔案，支援多種路徑策略
_env_loaded = False

# 優先使用環境變數指定的路徑
env_file = os.getenv('ENV_FILE_PATH')
if env_file and Path(env_file).exists():
    load_dotenv(env_file, override=False)
    _env_loaded = True
else:
    possible_paths = [
        Path.cwd() / '.env',  # 當前工作目錄
        Path(__file__).parent.parent.parent / '.env',  # 專案根目錄
    ]
    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(str(env_path), override=False)
            _env_loaded = True
            break

if not _env_loaded:
    load_dotenv()


CONNECTION_STRING_ENV = "POSTGRES_CONNECTION_STRING"
TOOLS_CONFIG_ENV = "MCP_TOOLS_CONFIG"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class DatabaseConfig(BaseModel):
    """Pool settings applied to every connection string the server opens."""

    pool_min_size: int = Field(default=1, ge=0, description="Connections kept open per pool")
    pool_max_size: int = Field(default=10, ge=1, description="Upper bound of connections per pool")
    connect_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for a new connection")
    command_timeout: float = Field(default=60.0, gt=0, description="Seconds any single statement may run")

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Create pool configuration from environment variables."""
        return cls(
            pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", "1")),
            pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", "10")),
            connect_timeout=float(os.getenv("DB_CONNECT_TIMEOUT", "10")),
            command_timeout=float(os.getenv("DB_COMMAND_TIMEOUT", "60"))
        )


class HTTPConfig(BaseModel):
    """HTTP (SSE) transport configuration including CORS."""

    host: str = Field(default="0.0.0.0", description="Bind address for the SSE server")
    port: int = Field(default=8000, description="Bind port for the SSE server")
    cors_allowed_origins: List[str] = Field(default_factory=list, description="Origins allowed by CORS")
    cors_preflight_max_age: int = Field(
        default=600,
        description="CORS preflight max age in seconds"
    )

    @classmethod
    def from_env(cls) -> "HTTPConfig":
        """Create HTTP configuration from environment variables."""
        origins_env = os.getenv("CORS_ALLOWED_ORIGINS", "")
        if origins_env:
            origins = [o.strip() for o in origins_env.split(",") if o.strip()]
        elif os.getenv("ENVIRONMENT", "development").lower() == "production":
            # 生產環境必須明確設定
            origins = []
        else:
            origins = ["http://localhost:3000", "http://localhost:8000"]

        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8000")),
            cors_allowed_origins=origins,
            cors_preflight_max_age=int(os.getenv("CORS_PREFLIGHT_MAX_AGE", "600"))
        )


class AppConfig(BaseModel):
    """Application configuration combining all configs."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    server_name: str = Field(default="postgresql-mcp-server", description="MCP server name identifier")
    server_version: str = Field(default="1.0.0", description="Version reported to MCP clients")
    connection_string: Optional[str] = Field(default=None, description="Server-wide default connection string")
    tools_config_path: Optional[str] = Field(default=None, description="Path of the tool enablement file")
    include_stacktrace: bool = Field(default=False, description="Append stack traces to error envelopes")
    log_level: str = Field(default="INFO", description="Root logging level")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create full application configuration from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            http=HTTPConfig.from_env(),
            server_name=os.getenv("MCP_SERVER_NAME", "postgresql-mcp-server"),
            tools_config_path=os.getenv(TOOLS_CONFIG_ENV) or None,
            include_stacktrace=_env_bool("MCP_INCLUDE_STACKTRACE"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper()
        )


class ToolsConfig(BaseModel):
    """Shape of the tool enablement file: ``{"enabledTools": [...]}``."""

    model_config = ConfigDict(populate_by_name=True)

    enabled_tools: List[str] = Field(alias="enabledTools")


def load_tools_config(path: Optional[str]) -> Optional[List[str]]:
    """Load the tool allow-list from a JSON file.

    A missing, unreadable or malformed file is never fatal: a warning is
    logged and ``None`` is returned, meaning every tool stays enabled.

    Args:
        path: Path of the enablement file, or None

    Returns:
        List of enabled tool names, or None for "all tools"
    """
    if not path:
        return None

    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"⚠️ Could not read tools config {path}: {e}. All tools remain enabled.")
        return None

    try:
        tools_config = ToolsConfig.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ Tools config {path} is not valid JSON ({e}). All tools remain enabled.")
        return None
    except ValidationError as e:
        logger.warning(
            f"⚠️ Tools config {path} must contain an 'enabledTools' array of strings "
            f"({e.error_count()} problem(s)). All tools remain enabled."
        )
        return None

    logger.info(f"Loaded tools config from {path}: {len(tools_config.enabled_tools)} tool(s) listed")
    return tools_config.enabled_tools


class ConnectionStringResolver:
    """Resolve the connection string a tool call should use.

    Precedence: explicit tool argument, then the CLI default, then the
    environment variable. The environment is read on every call so a
    value exported after startup is honoured.
    """

    def __init__(self, cli_connection_string: Optional[str] = None, env_var: str = CONNECTION_STRING_ENV):
        self.cli_connection_string = cli_connection_string
        self.env_var = env_var

    def resolve(self, explicit: Optional[str] = None) -> str:
        """Return the first non-empty connection string.

        Raises:
            ConfigurationError: If no source provides a connection string
        """
        for candidate in (explicit, self.cli_connection_string, os.getenv(self.env_var)):
            if candidate and candidate.strip():
                return candidate.strip()

        raise ConfigurationError(
            "No connection string provided. Pass connectionString to the tool, "
            f"start the server with --connection-string, or set {self.env_var}.",
            {"env_var": self.env_var}
        )

    __call__ = resolve
