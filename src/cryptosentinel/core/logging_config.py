"""
Logging configuration for CryptoSentinel.

Console output is one line per event, coloured by level. Lines emitted from a
toolkit or agent module are tagged with a short component label so that a run
that touches five upstream sources can be read top to bottom. The optional
file sink keeps module, function and line for later digging through retry
storms and upstream failures.
"""

from loguru import logger
import os
import sys
from typing import Callable, Dict, Optional

PACKAGE_PREFIX = "cryptosentinel."

# Module prefix -> console label
COMPONENT_LABELS = {
    "cryptosentinel.toolkits.data.token_holders_toolkit": "holders",
    "cryptosentinel.toolkits.data.dexscreener_toolkit": "market",
    "cryptosentinel.toolkits.data.onchain_metrics_toolkit": "onchain",
    "cryptosentinel.toolkits.data.social_sentiment_toolkit": "social",
    "cryptosentinel.toolkits.data.github_toolkit": "github",
    "cryptosentinel.toolkits.data.solana_program_toolkit": "program",
    "cryptosentinel.toolkits.utils": "http",
    "cryptosentinel.agents": "agent",
    "cryptosentinel.server": "api",
}

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{message}"
)


def component_label(module: Optional[str]) -> str:
    """Short label for a logging module name, empty for foreign modules."""
    if not module or not module.startswith(PACKAGE_PREFIX):
        return ""
    for prefix, label in COMPONENT_LABELS.items():
        if module.startswith(prefix):
            return label
    return "core"


def format_record(record: Dict) -> str:
    """Console format: optional component tag, then the coloured message."""
    # Braces in upstream payloads would otherwise be read as format fields
    message = record["message"].replace("{", "{{").replace("}", "}}")
    label = component_label(record["name"])
    tag = f"<dim>[{label}]</dim> " if label else ""

    level = record["level"].name
    if level == "DEBUG":
        return f"{tag}<dim>{message}</dim>\n"
    if level in ("ERROR", "CRITICAL"):
        return f"{tag}<red>{message}</red>\n"
    if level == "WARNING":
        return f"{tag}<yellow>{message}</yellow>\n"
    if level == "SUCCESS":
        return f"{tag}<green>{message}</green>\n"
    return f"{tag}{message}\n"


def get_console_format(style: str = "clean"):
    """Console format string (or callable) for the configured style."""
    if style == "timestamp":
        return "<dim>{time:HH:mm:ss}</dim> | <level>{message}</level>"
    if style == "detailed":
        return "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <dim>{name}</dim> | <level>{message}</level>"
    return format_record


def create_module_filter(module_levels: Dict[str, str]) -> Callable[[Dict], bool]:
    """
    Build a loguru filter applying per-module minimum levels.

    Args:
        module_levels: Module name prefix to level name,
            e.g. ``{"cryptosentinel.toolkits.utils.retry": "WARNING"}``.
            The longest matching prefix wins.
    """
    thresholds = sorted(
        ((prefix, logger.level(level.upper()).no) for prefix, level in module_levels.items()),
        key=lambda item: len(item[0]),
        reverse=True,
    )

    def filter_func(record) -> bool:
        module = record["name"] or ""
        for prefix, level_no in thresholds:
            if module.startswith(prefix):
                return record["level"].no >= level_no
        return True

    return filter_func


def setup_logging(config: 'LoggingConfig', console_filter: Optional[Callable] = None):
    """
    Replace loguru's sinks with the ones described by ``config``.

    Args:
        config: LoggingConfig instance
        console_filter: Filter for the console sink. Built from
            ``config.module_levels`` when not given.
    """
    logger.remove()

    if console_filter is None and config.module_levels:
        console_filter = create_module_filter(config.module_levels)

    if config.enable_console:
        logger.add(
            sys.stdout,
            format=get_console_format(config.console_style),
            level=config.level,
            colorize=True,
            filter=console_filter,
            backtrace=True,
            diagnose=True,
            enqueue=True,
        )

    log_path = config.get_log_file_path() if config.enable_file else None
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # "w" truncates on start, anything else appends
        mode = "w" if os.getenv("LOG_FILE_MODE", "a").lower() == "w" else "a"
        logger.add(
            str(log_path),
            format=FILE_FORMAT,
            level=config.level,
            rotation=config.file_rotation,
            retention=config.file_retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
            enqueue=True,
            mode=mode,
        )

    logger.debug(f"Logging configured: level={config.level}, file={log_path}")
