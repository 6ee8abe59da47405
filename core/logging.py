import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
    # paramiko transport 로그는 너무 많음
    logging.getLogger("paramiko").setLevel(logging.WARNING)
