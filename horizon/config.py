"""
Configuration and logging setup for Horizon streaming connections.

Provides centralized configuration with environment variable support
and sensible defaults for all connection-related settings.
"""

import os
import sys
import logging
from dataclasses import dataclass, field
from datetime import datetime

from dotenv import load_dotenv

from .types import HeartbeatStyle


# =============================================================================
# Logging Configuration
# =============================================================================

# ANSI color codes for terminal output
class LogColors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"
    BRIGHT_WHITE = "\033[97m"


class ColoredFormatter(logging.Formatter):
    """Formatter with colors and component-based prefixes."""

    # Component colors and icons
    COMPONENT_STYLES = {
        "horizon": (LogColors.BRIGHT_CYAN, "🚀"),
        "horizon.controller": (LogColors.GREEN, "🔗"),
        "horizon.heartbeat": (LogColors.YELLOW, "💓"),
        "horizon.receiver": (LogColors.CYAN, "📡"),
        "horizon.router": (LogColors.CYAN, "🔀"),
        "horizon.reconnect": (LogColors.MAGENTA, "🔁"),
        "horizon.transport": (LogColors.BRIGHT_BLACK, "📦"),
        "horizon.lifecycle": (LogColors.BRIGHT_BLUE, "🌗"),
        "horizon.assist": (LogColors.BLUE, "💬"),
        "horizon.tags": (LogColors.BRIGHT_MAGENTA, "🏷"),
        "horizon.search": (LogColors.BRIGHT_BLUE, "🔎"),
    }

    # Level colors and labels
    LEVEL_STYLES = {
        logging.DEBUG: (LogColors.BRIGHT_BLACK, "DBG"),
        logging.INFO: (LogColors.GREEN, "INF"),
        logging.WARNING: (LogColors.YELLOW, "WRN"),
        logging.ERROR: (LogColors.RED, "ERR"),
        logging.CRITICAL: (LogColors.BRIGHT_RED + LogColors.BOLD, "CRT"),
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        component_color, icon = self.COMPONENT_STYLES.get(
            record.name,
            (LogColors.WHITE, "•")
        )

        # Check for parent logger match
        if record.name not in self.COMPONENT_STYLES:
            for comp_name, style in self.COMPONENT_STYLES.items():
                if record.name.startswith(comp_name + "."):
                    component_color, icon = style
                    break

        level_color, level_label = self.LEVEL_STYLES.get(
            record.levelno,
            (LogColors.WHITE, "???")
        )

        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        short_name = record.name.replace("horizon.", "").upper()
        if short_name == "HORIZON":
            short_name = "CORE"

        if self.use_colors:
            line = (
                f"{LogColors.DIM}{timestamp}{LogColors.RESET} "
                f"{level_color}{level_label}{LogColors.RESET} "
                f"{icon} {component_color}{short_name:10}{LogColors.RESET} "
                f"{LogColors.BRIGHT_WHITE}{record.getMessage()}{LogColors.RESET}"
            )
        else:
            line = f"{timestamp} {level_label} {short_name:10} {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


LOGGER_COMPONENTS = (
    "controller",
    "heartbeat",
    "receiver",
    "router",
    "reconnect",
    "transport",
    "lifecycle",
    "assist",
    "tags",
    "search",
)


def setup_logging(
    level: int | str | None = None,
    use_colors: bool = True,
    config: "Config | None" = None
) -> logging.Logger:
    """
    Configure and return the main logger with component formatting.

    Intended for the host application; the library itself never calls it.

    Args:
        level: Logging level (number or name); defaults to config.log_level
        use_colors: Whether to use colored output
        config: Configuration whose log_level is used when level is omitted

    Returns:
        Configured "horizon" logger
    """
    if level is None:
        level = config.log_level if config is not None else logging.INFO
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    console_handler.setLevel(level)

    root.setLevel(level)
    root.addHandler(console_handler)

    horizon_logger = logging.getLogger("horizon")
    horizon_logger.setLevel(level)
    horizon_logger.propagate = True

    for child in LOGGER_COMPONENTS:
        logging.getLogger(f"horizon.{child}").setLevel(level)

    # Silence noisy third-party loggers
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return horizon_logger


# =============================================================================
# Connection Configuration
# =============================================================================

DEFAULT_BASE_URL = "https://itzerhypergalaxy.online"
DEFAULT_TAG_BASE_URL = "https://test-server-7w76.onrender.com"


@dataclass
class EndpointConfig:
    """HTTP(S) origins the websocket endpoints are derived from."""
    base_url: str = DEFAULT_BASE_URL
    tag_base_url: str = DEFAULT_TAG_BASE_URL

    @classmethod
    def from_env(cls) -> "EndpointConfig":
        """Create config from environment variables."""
        return cls(
            base_url=os.getenv("HORIZON_BASE_URL", DEFAULT_BASE_URL),
            tag_base_url=os.getenv("HORIZON_TAG_BASE_URL", DEFAULT_TAG_BASE_URL)
        )


@dataclass
class HeartbeatConfig:
    """Heartbeat/liveness configuration."""
    interval_s: float = 30.0
    # None keeps the probe style declared by each manager
    style: HeartbeatStyle | None = None

    @classmethod
    def from_env(cls) -> "HeartbeatConfig":
        """Create config from environment variables."""
        style = os.getenv("HORIZON_HEARTBEAT_STYLE")
        return cls(
            interval_s=float(os.getenv("HORIZON_HEARTBEAT_INTERVAL", "30.0")),
            style=HeartbeatStyle(style) if style else None
        )


@dataclass
class ReconnectConfig:
    """Reconnection backoff configuration."""
    base_delay_s: float = 1.0
    cap_s: float = 30.0
    max_attempts: int = 10
    monitor_interval_s: float = 10.0

    @classmethod
    def from_env(cls) -> "ReconnectConfig":
        """Create config from environment variables."""
        return cls(
            base_delay_s=float(os.getenv("HORIZON_RECONNECT_BASE_DELAY", "1.0")),
            cap_s=float(os.getenv("HORIZON_RECONNECT_CAP", "30.0")),
            max_attempts=int(os.getenv("HORIZON_RECONNECT_MAX_ATTEMPTS", "10")),
            monitor_interval_s=float(os.getenv("HORIZON_MONITOR_INTERVAL", "10.0"))
        )


@dataclass
class WebSocketConfig:
    """WebSocket protocol configuration."""
    open_timeout: float = 30.0
    ping_timeout: float = 20.0
    close_timeout: float = 10.0
    max_message_size: int = 10 * 1024 * 1024  # 10MB
    drain_interval_s: float = 0.1

    @classmethod
    def from_env(cls) -> "WebSocketConfig":
        """Create config from environment variables."""
        return cls(
            open_timeout=float(os.getenv("HORIZON_WS_OPEN_TIMEOUT", "30.0")),
            ping_timeout=float(os.getenv("HORIZON_WS_PING_TIMEOUT", "20.0")),
            max_message_size=int(os.getenv("HORIZON_WS_MAX_MESSAGE_SIZE", str(10 * 1024 * 1024))),
            drain_interval_s=float(os.getenv("HORIZON_DRAIN_INTERVAL", "0.1"))
        )


# =============================================================================
# Composite Configuration
# =============================================================================

@dataclass
class Config:
    """Complete connection configuration."""
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Config":
        """Create complete config from environment (and a .env file if present)."""
        load_dotenv(dotenv_path)
        return cls(
            endpoints=EndpointConfig.from_env(),
            heartbeat=HeartbeatConfig.from_env(),
            reconnect=ReconnectConfig.from_env(),
            websocket=WebSocketConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO")
        )


# =============================================================================
# Constants
# =============================================================================

# WebSocket close codes
class CloseCode:
    """Standard WebSocket close codes."""
    NORMAL = 1000
    GOING_AWAY = 1001


class Sentinel:
    """Literal text frames exchanged outside the JSON payloads."""
    INIT_REQUEST = '{"init": true}'
    INIT_ACK = "|INIT|"
    PING = "ping"
    PONG = "pong"
