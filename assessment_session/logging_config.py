import logging

from assessment_session.constants import LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = LOG_LEVEL) -> None:
    """
    Configure application logging from the LOG_LEVEL environment variable.
    """
    level_value = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=level_value,
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # httpx logs every request at INFO; keep it quiet unless debugging
    if level_value > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    app_logger = logging.getLogger("assessment_session")
    app_logger.setLevel(level_value)

