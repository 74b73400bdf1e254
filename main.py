import logging
import sys

import structlog

from config import LOG_LEVEL


def _configure_logging() -> None:
    level = logging.getLevelName(LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


def main() -> int:
    _configure_logging()
    from PyQt6.QtWidgets import QApplication

    from src.gui.main_window import MainWindow

    structlog.get_logger(__name__).info("pos_starting", log_level=LOG_LEVEL)
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
