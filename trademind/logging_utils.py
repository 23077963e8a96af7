"""Console output helpers for trademind.

Each line carries a short tag so the kind of event is readable without color:
model calls, ledger/memory bookkeeping, degraded paths such as failover or
truncation, errors, and successes. Set TRADEMIND_NO_COLOR to drop the ANSI
codes (useful when piping to files).
"""

import os
from enum import Enum

# Tags stay meaningful for color-blind readers and in plain logs
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_WARNING = "[~]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


class Color(Enum):
    """ANSI escape sequences used by the log helpers."""

    BLUE = "\033[94m"      # ledger and memory bookkeeping
    YELLOW = "\033[93m"    # model calls and retries
    MAGENTA = "\033[95m"   # failover, truncation
    RED = "\033[91m"
    GREEN = "\033[92m"
    CYAN = "\033[96m"

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colors_enabled() -> bool:
    return not os.getenv("TRADEMIND_NO_COLOR")


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap ``text`` in ``color`` (and bold if asked) unless colors are disabled."""

    if not colors_enabled():
        return text
    start = (Color.BOLD.value if bold else "") + color.value
    return f"{start}{text}{Color.RESET.value}"


def debug_llm_enabled() -> bool:
    """True when DEBUG_LLM asks for full prompt and response dumps."""
    return os.getenv("DEBUG_LLM", "").lower() in ("1", "true", "yes")


def _emit(tag: str, color: Color, message: str) -> None:
    print(colored(f"{tag} {message}", color))


def log_deterministic(message: str) -> None:
    _emit(LOG_TAG_DETERMINISTIC, Color.BLUE, message)


def log_agent(message: str) -> None:
    _emit(LOG_TAG_LLM, Color.YELLOW, message)


def log_warning(message: str) -> None:
    """Something degraded but the loop keeps going."""
    _emit(LOG_TAG_WARNING, Color.MAGENTA, message)


def log_error(message: str) -> None:
    _emit(LOG_TAG_ERROR, Color.RED, message)


def log_success(message: str) -> None:
    _emit(LOG_TAG_SUCCESS, Color.GREEN, message)


def log_info(message: str) -> None:
    _emit(LOG_TAG_INFO, Color.CYAN, message)
