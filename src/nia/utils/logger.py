import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


class ProjectFilter(logging.Filter):
    def __init__(self, project_name: str):
        super().__init__()
        self.project_name = project_name

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self.project_name) \
            or record.name == "__main__"


def _file_handler(path: Path, level: int, formatter: logging.Formatter):
    handler = RotatingFileHandler(
        path,
        maxBytes=10*1024*1024,
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_dir: Path | str | None, level: str | int = "INFO"):
    """Configure the root logger for the nia CLI

    Files under log_dir (skipped when log_dir is None):
    - debug.log: DEBUG+ from nia.* only
    - info.log: INFO+ from all modules
    - error.log: ERROR+ from all modules

    The console (stderr) gets nia.* records at the requested level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        debug_handler = _file_handler(
            log_dir / "debug.log", logging.DEBUG, formatter
        )
        debug_handler.addFilter(ProjectFilter("nia"))
        root_logger.addHandler(debug_handler)
        root_logger.addHandler(
            _file_handler(log_dir / "info.log", logging.INFO, formatter)
        )
        root_logger.addHandler(
            _file_handler(log_dir / "error.log", logging.ERROR, formatter)
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ProjectFilter("nia"))
    root_logger.addHandler(console_handler)
