from __future__ import annotations
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable
import json
from datetime import datetime, timezone

LOG_DIR = Path(__file__).resolve().parent.parent / 'logs'

STRUCTURED_LOG_FILE = LOG_DIR / 'scraper.events.jsonl'

_DEF_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}

DEFAULT_MAX_BYTES = 5 * 1024 * 1024

DISABLE_FILE_LOGS = bool(os.getenv('JOBSCRAPER_DISABLE_FILE_LOGS'))
DISABLE_EVENTS = bool(os.getenv('JOBSCRAPER_DISABLE_EVENTS'))


def resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}; expected one of {sorted(LEVELS)}") from None


def setup_logging(level: str | int = 'info', sinks: Iterable[str] = ('console', 'file'),
                  file_path: Path | None = None, max_bytes: int = DEFAULT_MAX_BYTES,
                  backup_count: int = 5, force: bool = False) -> logging.Logger:
    """Configure the root logger once.

    ``sinks`` selects ``console`` and/or ``file``; the file sink rotates after
    ``max_bytes``. Calling again is a no-op unless ``force`` is set.
    """
    root = logging.getLogger()
    if root.handlers and not force:
        # already configured
        return root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    lvl = resolve_level(level)
    root.setLevel(lvl)
    sinks = set(sinks)
    unknown = sinks - {'console', 'file'}
    if unknown:
        raise ValueError(f"Unknown log sinks: {sorted(unknown)}")
    if 'file' in sinks and not DISABLE_FILE_LOGS:
        path = Path(file_path) if file_path else LOG_DIR / 'app.log'
        path.parent.mkdir(parents=True, exist_ok=True)
        # human readable rotating log
        fh = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
        fh.setFormatter(logging.Formatter(_DEF_FORMAT))
        fh.setLevel(lvl)
        root.addHandler(fh)
    if 'console' in sinks:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s', datefmt='%H:%M:%S'))
        ch.setLevel(lvl)
        root.addHandler(ch)
    logging.getLogger('playwright').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    return root


def log_event(event: str, level: str = 'info', **fields):
    """Append a structured JSON event line."""
    if DISABLE_EVENTS:
        return
    try:
        STRUCTURED_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with STRUCTURED_LOG_FILE.open('a', encoding='utf-8') as f:
            rec = {'ts': datetime.now(timezone.utc).isoformat(timespec='seconds'), 'level': level, 'event': event}
            if isinstance(fields.get('error'), BaseException):
                err = fields['error']
                fields['error'] = f"{type(err).__name__}: {err}"
            rec.update(fields)
            f.write(json.dumps(rec, ensure_ascii=False, default=str) + '\n')
    except OSError:
        logging.getLogger(__name__).debug('Failed to write structured log line', exc_info=True)
