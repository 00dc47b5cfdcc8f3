"""
Component logging for sparkwms-sync.

Every module asks for a tuple of level functions bound to its component
name instead of repeating logger lookups:

Usage:
    from shared.log import create_logger
    log_trace, log_debug, log_info, log_warn, log_error = create_logger("Worker")
    log_info("Delivered commit for dev-1")  # -> logger "sparkwms.worker"

Output formatting (JSON or plain text) is decided once by
shared.logging_config.configure_logging().
"""

import logging

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER_NAME = "sparkwms"


def get_component_logger(component: str = "") -> logging.Logger:
    """Return the stdlib logger for a component (``sparkwms.<component>``)."""
    if not component:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component.lower()}")


def create_logger(component: str = ""):
    """Create log functions for a component.

    Args:
        component: Component name. If provided, records go to
                   "sparkwms.<component>" and messages are prefixed with
                   "[<component>]", otherwise the "sparkwms" logger is used.

    Returns:
        Tuple of (log_trace, log_debug, log_info, log_warn, log_error) functions.
    """
    logger = get_component_logger(component)
    prefix = f"[{component}] " if component else ""

    def log_trace(msg): logger.log(TRACE, f"{prefix}{msg}")
    def log_debug(msg): logger.debug(f"{prefix}{msg}")
    def log_info(msg): logger.info(f"{prefix}{msg}")
    def log_warn(msg): logger.warning(f"{prefix}{msg}")
    def log_error(msg): logger.error(f"{prefix}{msg}")

    return log_trace, log_debug, log_info, log_warn, log_error
