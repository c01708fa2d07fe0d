from __future__ import annotations
import logging
import functools
from typing import Type, Callable, Any, Tuple

class S3ExplorerError(Exception): pass
class ListingError(S3ExplorerError): pass
class ConfigError(S3ExplorerError): pass

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SILENT_LOGGER = "s3_explorer.silent"
# connection pool chatter drowns out per-key diagnostics
NOISY_LOGGERS = ("urllib3",)

def setup_logging(level: int = logging.INFO, logfile: str | None = None) -> None:
    """
    Route everything through one root handler (plus an optional file).
    Calling it again replaces the previous handlers.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(logfile))
    fmt = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(fmt)
        root.addHandler(h)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

def diagnostics_logger(name: str, enabled: bool = False) -> logging.Logger:
    """
    Logger that receives per-item failures.
    Silent unless enabled, so quiet runs only show up as missing files.
    """
    if enabled:
        return logging.getLogger(name)
    log = logging.getLogger(SILENT_LOGGER)
    if not log.handlers:
        log.addHandler(logging.NullHandler())
    log.propagate = False
    return log

def reraise_as(
    exception_cls: Type[S3ExplorerError],
    *catch: Type[BaseException],
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Turn the listed low-level errors raised by the wrapped function into
    `exception_cls`, logging them once. Anything else propagates untouched.
    """
    caught: Tuple[Type[BaseException], ...] = catch or (Exception,)

    def deco(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*a, **kw):
            try:
                return func(*a, **kw)
            except caught as e:
                logging.getLogger(func.__module__).error("%s(%s) failed: %s", func.__name__, a[0] if a else "", e)
                raise exception_cls(str(e)) from e
        return wrapper
    return deco
