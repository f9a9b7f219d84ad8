from __future__ import annotations
import asyncio
import random
import re
from typing import Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

_CONTROL_WS = re.compile(r"[\r\n\t]+")
_MULTI_WS = re.compile(r"\s\s+")
_LEADING_AND = re.compile(r"^and\s+", re.I)


def sanitize_text(value: Optional[str]) -> str:
    """Collapse whitespace noise so the same job compares equal across scrapes."""
    if not value:
        return ''
    text = _CONTROL_WS.sub(' ', value)
    text = _MULTI_WS.sub(' ', text)
    return text.strip()


def sanitize_lines(values: Optional[Iterable[str]]) -> List[str]:
    if not values:
        return []
    return [s for s in (sanitize_text(v) for v in values) if s]


def strip_query(url: Optional[str]) -> str:
    """Drop query string and fragment from a URL."""
    if not url:
        return ''
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))


def same_origin(a: str, b: str) -> bool:
    pa, pb = urlsplit(a or ''), urlsplit(b or '')
    return (pa.scheme, pa.hostname) == (pb.scheme, pb.hostname)


def leading_token(value: Optional[str]) -> str:
    """'201-500 employees 120 on LinkedIn' -> '201-500'."""
    text = sanitize_text(value)
    return text.split(' ', 1)[0] if text else ''


def split_skills(values: Optional[Iterable[str]]) -> List[str]:
    """Flatten 'Python, SQL, and Docker' style skill lines into single skills."""
    out: List[str] = []
    for line in values or []:
        for part in sanitize_text(line).split(','):
            part = _LEADING_AND.sub('', part.strip()).strip()
            if part and part not in out:
                out.append(part)
    return out


def random_between(min_s: float, max_s: float) -> float:
    if max_s < min_s:
        min_s, max_s = max_s, min_s
    return random.uniform(min_s, max_s)


async def jitter_sleep(min_s: float, max_s: float) -> float:
    """Non-blocking randomized pause; returns the delay used."""
    delay = random_between(min_s, max_s)
    if delay > 0:
        await asyncio.sleep(delay)
    return delay
