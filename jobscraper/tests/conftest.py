"""Global pytest fixtures & test speed settings.
 - Sets env vars to disable logging side effects before the package is imported.
 - Provides fast engine settings and a fake LinkedIn site.
"""
from __future__ import annotations
import os
import sys, pathlib

os.environ.setdefault('JOBSCRAPER_DISABLE_FILE_LOGS', '1')
os.environ.setdefault('JOBSCRAPER_DISABLE_EVENTS', '1')
os.environ.setdefault('JOBSCRAPER_POLITE_MIN', '0')
os.environ.setdefault('JOBSCRAPER_POLITE_MAX', '0.001')

# Add project root to sys.path for tests run from a checkout
ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from jobscraper.linkedin.testing import FakeSite, fast_settings


@pytest.fixture
def settings():
    return fast_settings()


@pytest.fixture
def site():
    return FakeSite({'python': ['101', '102', '103']})
