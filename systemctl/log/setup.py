import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


def setup_logging(console_level: int = logging.INFO, stream=None) -> None:
    """
    Configures the root logger.
    Clears any previously configured handlers to prevent duplication and
    installs a single console handler.

    Managed services write to the daemon's stdout/stderr directly, so their
    output appears on the same console without passing through logging.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param stream: Stream to write to, stdout by default.
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)
