import logging
import os


def setup_logging(log_file="swordfight.log", level=logging.INFO):
    """
    Configures the root logger to write to a file.

    The terminal belongs to the UI, so diagnostics never go to stdout.

    Args:
        log_file (str): The path to the log file.
        level (int | str): Logging level, e.g. logging.DEBUG or "INFO".
    """
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        filename=log_file,
        filemode='w',  # Overwrite log on each run
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("Logging initialized (level=%s).", logging.getLevelName(level))
