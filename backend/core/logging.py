import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logger = logging.getLogger()
    logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    # uvicorn --reload re-imports main; never stack duplicate handlers
    for existing in list(logger.handlers):
        if isinstance(existing, logging.StreamHandler) and getattr(existing, "name", None) == "inventory":
            logger.removeHandler(existing)
    handler.set_name("inventory")
    logger.addHandler(handler)
