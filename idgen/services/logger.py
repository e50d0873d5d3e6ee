import logging


def setup_logger(level: str = "INFO"):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler()],
    )

    idgen_logger = logging.getLogger("idgen")
    idgen_logger.setLevel(level.upper())

    return idgen_logger
