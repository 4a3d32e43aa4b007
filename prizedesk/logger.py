import os
import re
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import LOGS_DIR

# digit runs long enough to be a phone number (E.164 without '+', or local with a leading 0)
PHONE_RE = re.compile(r"(?<!\d)(\+?\d{3})\d{3,8}(\d{4})(?!\d)")


class PhoneMaskFilter(logging.Filter):
    """Last line of defence: masks any phone number that reaches a log record unmasked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = PHONE_RE.sub(r"\1***\2", message)
        if masked != message:
            record.msg, record.args = masked, None
        return True


class ComponentFileHandler(logging.Handler):
    """
    Routes each record to logs/<component>.log, where the component is the
    first segment of the logger name ("webapp.auth" -> webapp.log).
    File handlers are created lazily and rotate at max_bytes.
    """
    def __init__(
            self,
            logs_dir: str | os.PathLike | Path = LOGS_DIR,
            *,
            max_bytes: int = 5 * 1024 * 1024,
            backup_count: int = 3,
            encoding: str = "utf-8",
    ):
        super().__init__()
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.encoding = encoding
        self._handlers: dict[str, RotatingFileHandler] = {}

    @staticmethod
    def component(name: str | None) -> str:
        head = (name or "root").split(".", 1)[0]
        return re.sub(r"[^\w-]", "_", head) or "root"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            key = self.component(record.name)
            handler = self._handlers.get(key)
            if handler is None:
                handler = RotatingFileHandler(
                    self.logs_dir / f"{key}.log",
                    maxBytes=self.max_bytes,
                    backupCount=self.backup_count,
                    encoding=self.encoding,
                )
                handler.setLevel(self.level)
                handler.setFormatter(self.formatter)
                self._handlers[key] = handler
            handler.emit(record)
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        for h in self._handlers.values():
            h.close()
        self._handlers.clear()
        super().close()


def setup_logging(level: int = logging.INFO, logs_dir: str | os.PathLike | Path = LOGS_DIR) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    fmt = logging.Formatter(fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    masker = PhoneMaskFilter()

    sh = logging.StreamHandler()
    fh = ComponentFileHandler(logs_dir)
    for handler in (sh, fh):
        handler.setLevel(level)
        handler.setFormatter(fmt)
        handler.addFilter(masker)

    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    root.addHandler(sh)
    root.addHandler(fh)

    # driver chatter stays out of the component logs
    for noisy in ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
