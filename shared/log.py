"""
StrmExtract component logging.

Every module logs through a small set of level functions bound to a
component name, so call sites stay short and the logger hierarchy stays
consistent ("StrmExtract.<component>").

Usage:
    from shared.log import create_logger
    log_trace, log_debug, log_info, log_warn, log_error = create_logger("Job")
    log_info("Refreshing 42 items")  # -> logger "StrmExtract.Job"
"""

import logging

# Below DEBUG; used for very chatty per-item output
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER_NAME = "StrmExtract"


def create_logger(component: str = ""):
    """Create log functions for a component.

    Args:
        component: Component name suffix. If provided, the logger is
                   "StrmExtract.{component}", otherwise "StrmExtract".

    Returns:
        Tuple of (log_trace, log_debug, log_info, log_warn, log_error) functions.
    """
    name = f"{ROOT_LOGGER_NAME}.{component}" if component else ROOT_LOGGER_NAME
    logger = logging.getLogger(name)

    def log_trace(msg): logger.log(TRACE, msg)
    def log_debug(msg): logger.debug(msg)
    def log_info(msg): logger.info(msg)
    def log_warn(msg): logger.warning(msg)
    def log_error(msg): logger.error(msg)

    return log_trace, log_debug, log_info, log_warn, log_error


def create_progress_logger():
    """Create the task progress reporter.

    Returns:
        log_progress function accepting a percentage in [0, 100].
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.Progress")

    def log_progress(p):
        logger.info(f"Progress: {p:.1f}%", extra={"progress": round(p, 2)})

    return log_progress
