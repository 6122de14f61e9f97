import re
import json
import logging
import pathlib
import datetime
import logging.config
from typing import Union
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler

from rfpengine.utils.vault import secrets


_logger_var: ContextVar[Union[logging.Logger, logging.LoggerAdapter]] = ContextVar(
    "pid_tool_logger", default=None
)

CONFIG_FILE = pathlib.Path(__file__).resolve().parent.parent / "logging_config.json"

CONTEXT_FIELDS = {
    "tool_name": "N/A",
    "rfp_id": "N/A",
    "ip_address": "no_ip",
    "request_type": "N/A",
    "user_name": "Anonymous",
}

RED = "\033[31m"
GREEN = "\033[32m"
BLUE = "\033[34m"
ORANGE = "\033[33m"
GREY = "\033[90m"
WHITE = "\033[97m"
PURPLE = "\033[35m"
RESET = "\033[0m"


def set_logger(logger: logging.Logger, **extra):
    _logger_var.set(logging.LoggerAdapter(logger, extra))


def get_logger() -> logging.Logger:
    logger = _logger_var.get()
    if logger is None:
        raise RuntimeError("Tool-specific logger not set in this context")
    return logger


def log_dir() -> pathlib.Path:
    """Base directory for per-RFP tool logs."""
    configured = secrets.get("rfpengine_log_dir")
    if configured:
        return pathlib.Path(configured).expanduser()
    return pathlib.Path.home() / "process_logs"


class NoDebugFilter(logging.Filter):
    """Filter that blocks DEBUG messages"""

    def filter(self, record):
        return record.levelno > logging.DEBUG


def setup_logging():
    with open(CONFIG_FILE) as f_in:
        config = json.load(f_in)

    # Expand ~ and make sure file handler directories exist
    if "handlers" in config:
        for handler in config["handlers"].values():
            if "filename" in handler:
                path = pathlib.Path(handler["filename"]).expanduser()
                handler["filename"] = str(path)
                path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(config)
    noisy_libs = [
        "google_genai",
        "google_genai.models",
        "google.genai",
        "google.genai.models",
        "httpx",
        "httpcore",
        "urllib3",
        "hvac",
        "werkzeug",
    ]

    for name in noisy_libs:
        lib_logger = logging.getLogger(name)
        lib_logger.setLevel(logging.ERROR)
        lib_logger.propagate = False

    context_filter = ContextFilter()
    no_debug_filter = NoDebugFilter()
    root_logger = logging.getLogger()
    root_logger.addFilter(context_filter)
    for handler in root_logger.handlers:
        handler.addFilter(context_filter)
        handler.addFilter(no_debug_filter)


class ContextFilter(logging.Filter):
    def filter(self, record):
        # Pull extras from the adapter registered for this context, if any
        current = _logger_var.get()
        if isinstance(current, logging.LoggerAdapter):
            extra = getattr(current, "extra", {}) or {}
            for k in CONTEXT_FIELDS:
                if not hasattr(record, k) and k in extra:
                    setattr(record, k, extra[k])

        for k, default in CONTEXT_FIELDS.items():
            if not hasattr(record, k):
                setattr(record, k, default)
        return True


class PidToolHandlerFilter(logging.Filter):
    """Filter for pid_tool handler - only allows DEBUG, ERROR, CRITICAL"""

    def filter(self, record):
        return record.levelno == logging.DEBUG or record.levelno >= logging.ERROR


def pid_tool_logger(rfp_id: str | None, tool_name: str):
    rfp_id = rfp_id or "SYSTEM"
    target = log_dir() / rfp_id
    target.mkdir(parents=True, exist_ok=True)

    log_name = target / f"{tool_name}.log"
    handler = RotatingFileHandler(filename=log_name, maxBytes=5_000_000, backupCount=1)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    handler.addFilter(PidToolHandlerFilter())

    logger_name = f"{rfp_id}.{tool_name}"
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if this is called multiple times
    for old in list(logger.handlers):
        old.close()
    logger.handlers.clear()
    logger.addHandler(handler)

    logger.propagate = True

    return logger


def bind_tool_logger(
    tool_name: str,
    rfp_id: str | None = None,
    remote_ip: str | None = None,
    request_method: str | None = None,
    user_name: str | None = None,
):
    """Install the per-RFP tool logger for this context and return it."""
    base_logger = pid_tool_logger(rfp_id=rfp_id, tool_name=tool_name)
    set_logger(
        base_logger,
        tool_name=tool_name,
        rfp_id=rfp_id or "N/A",
        ip_address=remote_ip or "no_ip",
        request_type=request_method or "N/A",
        user_name=user_name or "Anonymous",
    )
    return get_logger()


def rebind_rfp_logger(rfp_id: str):
    """
    Move the current tool logger onto an RFP's log directory.

    Call only with the id of a stored RFP; ids from the request path are
    untrusted until the store has returned a record for them.
    """
    current = _logger_var.get()
    extra = dict(getattr(current, "extra", None) or {})
    tool_name = extra.get("tool_name") or "tool"
    extra["rfp_id"] = rfp_id
    set_logger(pid_tool_logger(rfp_id=rfp_id, tool_name=tool_name), **extra)
    return get_logger()


class DynamicPrefixFormatter(logging.Formatter):
    """
    Color-aware formatter. Pass color=True/False from logging config.
    """

    RFP_W = 26
    IP_W = 15
    PROC_W = 6
    TOOL_W = 9
    FUNC_W = 20
    LEVEL_W = 7

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = bool(color)

    def _c(self, code: str) -> str:
        """Return ANSI code only if color mode is enabled."""
        return code if self.color else ""

    @staticmethod
    def _derive_tool_base(record: logging.LogRecord) -> str:
        tb = getattr(record, "tool_base", None)
        if tb:
            return str(tb).upper()

        name = getattr(record, "name", "")
        if "." in name:
            tool = name.split(".", 1)[1].lower()
        else:
            tool = (getattr(record, "tool_name", "") or "").lower()

        tool = re.sub(r"(_main|_route)$", "", tool)

        if "compare" in tool:
            return "COMPARE"
        if "extract" in tool or "from_text" in tool:
            return "EXTRACT"
        if "email" in tool or "webhook" in tool:
            return "EMAIL"
        if "vendor" in tool:
            return "VENDOR"
        if "rfp" in tool or "proposal" in tool:
            return "RFP"
        return "-"

    def format(self, record: logging.LogRecord) -> str:
        is_error_or_warn = record.levelno >= logging.WARNING
        is_error = record.levelno >= logging.ERROR
        request_type = (getattr(record, "request_type", "") or "").upper()
        is_get = request_type == "GET"
        process = (getattr(record, "request_type", "N/A") or "N/A")[: self.PROC_W]
        rfp_id = (getattr(record, "rfp_id", "N/A") or "N/A")[: self.RFP_W]
        ip_address = (getattr(record, "ip_address", "no_ip") or "no_ip")[: self.IP_W]
        user_name = (getattr(record, "user_name", "Anonymous") or "Anonymous")[:15]
        tool_base = self._derive_tool_base(record)
        func_name = (getattr(record, "tool_name", "N/A") or "N/A")[: self.FUNC_W]
        ts = datetime.datetime.fromtimestamp(record.created).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        prefix = "[-]" if is_error_or_warn else "[+]"
        if prefix == "[+]":
            prefix_colored = f"{self._c(GREY) if is_get else self._c(GREEN)}{prefix}"
        else:
            prefix_colored = f"{self._c(RED)}{prefix}"

        ts_colored = f"{self._c(WHITE)}{ts}"
        rfp_colored = f"{self._c(BLUE)}{rfp_id:<{self.RFP_W}}"
        ip_colored = f"{self._c(ORANGE)}{ip_address:<{self.IP_W}}"
        user_colored = f"{self._c(BLUE)}{user_name:<15}"

        if process == "POST":
            proc_colored = f"{self._c(GREEN)}{process:<{self.PROC_W}}"
        else:
            proc_colored = f"{self._c(WHITE)}{process:<{self.PROC_W}}"

        dash = f"{self._c(RED)} - "

        if is_error:
            level_colored = f"{self._c(RED)}{record.levelname:<{self.LEVEL_W}}"
        else:
            level_colored = f"{self._c(PURPLE)}{record.levelname:<{self.LEVEL_W}}"

        tool_colored = f"{self._c(GREY)}{tool_base:<{self.TOOL_W}}"
        func_colored = f"{self._c(GREY)}{func_name:<{self.FUNC_W}}"
        msg = record.getMessage()
        tail_msg_colored = f"{self._c(GREY)}{msg}"

        line = (
            f"{prefix_colored} "
            f"{ts_colored} "
            f"{rfp_colored} "
            f"{ip_colored} "
            f"{user_colored} "
            f"{proc_colored}"
            f"{dash}"
            f"{level_colored}"
            f"{dash}"
            f"{tool_colored}: {func_colored} "
            f"{tail_msg_colored}"
        )
        if self.color:
            line += RESET

        if record.exc_info:
            line += "\n" + super().formatException(record.exc_info)
            if self.color:
                line += RESET
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
            if self.color:
                line += RESET

        return line
