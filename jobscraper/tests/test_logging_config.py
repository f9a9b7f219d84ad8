import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from jobscraper.linkedin import logging_config


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_file_sink_rotates(tmp_path, monkeypatch, restore_root):
    monkeypatch.setattr(logging_config, 'DISABLE_FILE_LOGS', False)
    log_file = tmp_path / 'logs' / 'run.log'
    root = logging_config.setup_logging('debug', sinks=('file',), file_path=log_file, max_bytes=1024, force=True)
    handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    assert len(handlers) == 1 and handlers[0].maxBytes == 1024
    assert root.level == logging.DEBUG
    assert log_file.parent.exists()


def test_second_call_without_force_keeps_handlers(restore_root):
    root = logging_config.setup_logging('info', sinks=('console',), force=True)
    before = list(root.handlers)
    logging_config.setup_logging('error', sinks=('console',))
    assert root.handlers == before
    assert root.level == logging.INFO


def test_unknown_level_and_sink(restore_root):
    with pytest.raises(ValueError):
        logging_config.resolve_level('verbose')
    assert logging_config.resolve_level('warn') == logging.WARNING
    with pytest.raises(ValueError):
        logging_config.setup_logging('info', sinks=('syslog',), force=True)


def test_log_event_writes_json_line(tmp_path, monkeypatch):
    path = tmp_path / 'events.jsonl'
    monkeypatch.setattr(logging_config, 'DISABLE_EVENTS', False)
    monkeypatch.setattr(logging_config, 'STRUCTURED_LOG_FILE', path)
    logging_config.log_event('detail_field_failed', level='warn', job_id='7', error=TimeoutError('slow'))
    rec = json.loads(path.read_text(encoding='utf-8').splitlines()[-1])
    assert rec['event'] == 'detail_field_failed'
    assert rec['job_id'] == '7'
    assert rec['error'] == 'TimeoutError: slow'
