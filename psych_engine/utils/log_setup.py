"""
Logging configuration

Engine modules log through the standard logging module on the root logger;
this sets the format and level once for the command line or a host process.
"""

import logging


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the engine

    INFO reports session lifecycle events (created, updated, tested, ended,
    deleted). DEBUG adds per-snapshot derivation details and compare-and-set
    retries.

    Args:
        debug: If True, enable DEBUG level logging
    """
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
