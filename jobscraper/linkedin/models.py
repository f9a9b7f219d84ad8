from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import re
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import BROWSER_DEFAULTS

Relevance = Literal['relevant', 'recent']
RemoteMode = Literal['onSite', 'remote', 'hybrid']
Experience = Literal['internship', 'entry', 'associate', 'mid-senior', 'director', 'executive']
JobType = Literal['fulltime', 'parttime', 'contract', 'temporary', 'volunteer', 'internship', 'other']
DatePosted = Literal['1', '7', '30', 'any']
Salary = Literal['40K', '60K', '80K', '100K', '120K', '140K', '160K', '180K', '200K']


class GlobalFilters(BaseModel):
    """Search facets shared by every search of one run."""
    model_config = ConfigDict(frozen=True, extra='forbid', populate_by_name=True)

    relevance: Optional[Relevance] = None
    remote: Optional[Tuple[RemoteMode, ...]] = None
    experience: Optional[Tuple[Experience, ...]] = None
    job_type: Optional[Tuple[JobType, ...]] = Field(default=None, alias='jobType')
    date_posted: Optional[DatePosted] = Field(default=None, alias='datePosted')
    salary: Optional[Salary] = None
    easy_apply: Optional[bool] = Field(default=None, alias='easyApply')

    @field_validator('remote', 'experience', 'job_type', mode='before')
    @classmethod
    def ensure_tuple(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            return (v,)
        return tuple(v)

    @field_validator('date_posted', mode='before')
    @classmethod
    def days_as_str(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def facets(self) -> dict:
        """Facet values that are set, keyed by field name."""
        return self.model_dump(exclude_none=True, exclude={'keywords', 'location'})


class Filter(GlobalFilters):
    """One search: keywords and location are mandatory, every facet is optional."""
    keywords: str
    location: str

    @field_validator('keywords', 'location')
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('must not be empty')
        return v


class JobCard(BaseModel):
    """Listing-level fields as read from the results list (unsanitized)."""
    id: str = ''
    title: str = ''
    link: str = ''
    company: str = ''
    company_img_link: str = ''
    location: str = ''
    remote: str = ''
    is_promoted: bool = False


class JobRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')

    id: str
    title: str
    link: str
    company: str
    location: str
    description: Optional[str] = None
    company_size: Optional[str] = None
    company_link: Optional[str] = None
    company_img_link: Optional[str] = None
    remote: Optional[str] = None
    is_promoted: Optional[bool] = None
    time_since_posted: Optional[str] = None
    is_reposted: Optional[bool] = None
    skills_required: Optional[List[str]] = None
    requirements: Optional[List[str]] = None
    job_insights: Optional[List[str]] = None
    apply_link: Optional[str] = None


REQUIRED_FIELDS = ('id', 'title', 'link', 'company', 'location')

# fields filled by the details panel, in extraction order
DETAIL_FIELDS = (
    'description',
    'time_since_posted',
    'company_link',
    'company_size',
    'skills_required',
    'requirements',
    'job_insights',
    'apply_link',
)

OPTIONAL_FIELDS = tuple(f for f in JobRecord.model_fields if f not in REQUIRED_FIELDS)

_CAMEL_RGX = re.compile(r'(?<!^)(?=[A-Z])')

# names used by the JS tooling for the same columns
_FIELD_ALIASES = {
    'insights': 'job_insights',
    'skills': 'skills_required',
}


def normalize_field_name(name: str) -> str:
    """Map ``applyLink`` / ``apply_link`` style names onto JobRecord fields."""
    key = _CAMEL_RGX.sub('_', name.strip()).lower()
    key = _FIELD_ALIASES.get(key, key)
    if key in REQUIRED_FIELDS:
        raise ValueError(f"Required field {name!r} cannot be excluded")
    if key not in OPTIONAL_FIELDS:
        raise ValueError(f"Unknown job field {name!r}; expected one of {', '.join(OPTIONAL_FIELDS)}")
    return key


def normalize_exclude_fields(names) -> frozenset:
    if not names:
        return frozenset()
    if isinstance(names, str):
        names = [names]
    return frozenset(normalize_field_name(n) for n in names)


@dataclass(frozen=True)
class SearchTask:
    filter: Filter
    index: int


class BrowserOptions(BaseModel):
    headless: bool = BROWSER_DEFAULTS['headless']
    slow_mo: int = Field(default=BROWSER_DEFAULTS['slow_mo'], ge=0)
    timeout: int = Field(default=BROWSER_DEFAULTS['timeout'], gt=0)
    args: List[str] = Field(default_factory=list)

    def launch_kwargs(self) -> dict:
        args = list(BROWSER_DEFAULTS['args'])
        args.extend(a for a in self.args if a not in args)
        return {'headless': self.headless, 'slow_mo': self.slow_mo, 'timeout': self.timeout, 'args': args}


class LoggerOptions(BaseModel):
    level: Literal['debug', 'info', 'warn', 'warning', 'error'] = 'info'
    sinks: Tuple[Literal['console', 'file'], ...] = ('console', 'file')
    file_path: Optional[Path] = None
    max_file_size: int = Field(default=5 * 1024 * 1024, gt=0)
