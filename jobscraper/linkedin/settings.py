"""Centralized settings with environment + runtime config overlay.
Provides typed accessors so timing constants live in one place.
"""
from __future__ import annotations
from pathlib import Path
import os, yaml
from dataclasses import dataclass

_RUNTIME_CACHE: dict | None = None

CONFIG_DIR = Path(__file__).resolve().parent.parent / 'config'

def _load_runtime() -> dict:
    global _RUNTIME_CACHE
    if _RUNTIME_CACHE is None:
        cfg_file = CONFIG_DIR / 'runtime.yml'
        if cfg_file.exists():
            try:
                _RUNTIME_CACHE = yaml.safe_load(cfg_file.read_text(encoding='utf-8')) or {}
            except yaml.YAMLError:
                _RUNTIME_CACHE = {}
        else:
            _RUNTIME_CACHE = {}
    return _RUNTIME_CACHE

def _runtime_key(name: str) -> str:
    # JOBSCRAPER_POLITE_MIN -> polite_min
    return name.lower().removeprefix('jobscraper_')

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is not None:
        try:
            return float(v)
        except ValueError:
            return default
    return float(_load_runtime().get(_runtime_key(name), default))

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is not None:
        try:
            return int(v)
        except ValueError:
            return default
    return int(_load_runtime().get(_runtime_key(name), default))

def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is not None:
        return v
    return str(_load_runtime().get(_runtime_key(name), default))

SCHEMA_VERSION = 1  # bump when the jobs table needs a migration step

@dataclass(frozen=True)
class Settings:
    # delay between two extracted jobs of one session
    polite_min: float
    polite_max: float
    # delay before a pool worker starts a queued search
    task_start_min: float
    task_start_max: float
    page_size: int
    list_poll_interval: float
    list_timeout: float
    list_retry_attempts: int
    list_retry_base_delay: float
    list_retry_deadline: float
    details_retry_attempts: int
    details_retry_base_delay: float
    details_retry_deadline: float
    placeholder_timeout: float
    apply_tab_timeout: float
    default_limit: int
    max_concurrent: int
    max_pages: int
    search_timeout: float  # 0 disables the per-search wall-clock cap
    log_level: str
    log_file: Path
    log_max_bytes: int
    log_backup_count: int
    db_path: Path

def load_settings() -> Settings:
    base = Path(__file__).resolve().parent.parent
    return Settings(
        polite_min=_env_float('JOBSCRAPER_POLITE_MIN', 1.5),
        polite_max=_env_float('JOBSCRAPER_POLITE_MAX', 4.0),
        task_start_min=_env_float('JOBSCRAPER_TASK_START_MIN', 2.0),
        task_start_max=_env_float('JOBSCRAPER_TASK_START_MAX', 5.0),
        page_size=_env_int('JOBSCRAPER_PAGE_SIZE', 25),
        list_poll_interval=_env_float('JOBSCRAPER_LIST_POLL_INTERVAL', 0.2),
        list_timeout=_env_float('JOBSCRAPER_LIST_TIMEOUT', 10.0),
        list_retry_attempts=_env_int('JOBSCRAPER_LIST_RETRY_ATTEMPTS', 3),
        list_retry_base_delay=_env_float('JOBSCRAPER_LIST_RETRY_BASE_DELAY', 0.3),
        list_retry_deadline=_env_float('JOBSCRAPER_LIST_RETRY_DEADLINE', 30.0),
        details_retry_attempts=_env_int('JOBSCRAPER_DETAILS_RETRY_ATTEMPTS', 3),
        details_retry_base_delay=_env_float('JOBSCRAPER_DETAILS_RETRY_BASE_DELAY', 0.2),
        details_retry_deadline=_env_float('JOBSCRAPER_DETAILS_RETRY_DEADLINE', 2.0),
        placeholder_timeout=_env_float('JOBSCRAPER_PLACEHOLDER_TIMEOUT', 3.0),
        apply_tab_timeout=_env_float('JOBSCRAPER_APPLY_TAB_TIMEOUT', 8.0),
        default_limit=_env_int('JOBSCRAPER_DEFAULT_LIMIT', 25),
        max_concurrent=_env_int('JOBSCRAPER_MAX_CONCURRENT', 3),
        max_pages=_env_int('JOBSCRAPER_MAX_PAGES', 40),
        search_timeout=_env_float('JOBSCRAPER_SEARCH_TIMEOUT', 0.0),
        log_level=_env_str('JOBSCRAPER_LOG_LEVEL', 'info'),
        log_file=Path(_env_str('JOBSCRAPER_LOG_FILE', str(base / 'logs' / 'app.log'))),
        log_max_bytes=_env_int('JOBSCRAPER_LOG_MAX_BYTES', 5 * 1024 * 1024),
        log_backup_count=_env_int('JOBSCRAPER_LOG_BACKUP_COUNT', 5),
        db_path=Path(_env_str('JOBSCRAPER_DB', str(base / 'data' / 'jobs.sqlite'))),
    )

SETTINGS = load_settings()
