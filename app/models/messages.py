from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DESCRIPTION_MAX_LENGTH = 500


@dataclass(frozen=True)
class RawCandidate:
    """
    One unvalidated record as extracted by a source adapter, before any
    identifier matching or date parsing.
    """

    raw_title: str
    raw_link: str
    raw_published: Optional[str] = None
    raw_description: Optional[str] = None
    raw_category: Optional[str] = None


@dataclass
class AdapterResult:
    candidates: List[RawCandidate] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # Paginated sources stopped at their page cap while a cursor remained.
    has_more: bool = False
    pages_retrieved: int = 0


class Message(BaseModel):
    """
    Canonical, normalized administrative message served to the browser.

    Built fresh on every fetch cycle; never persisted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    identifier: str
    title: str
    subject: str
    link: str
    published_at: datetime
    description: str = Field(default="", max_length=DESCRIPTION_MAX_LENGTH)
    category: Optional[str] = None
    feed_type: str
    # 1-based position of the tier in the feed's fallback chain.
    source_tier: int
    tier_kind: str
    is_placeholder: bool = False


@dataclass
class FeedResult:
    feed_id: str
    messages: List[Message] = field(default_factory=list)
    # 0 when no tier produced data.
    tier_used: int = 0
    warnings: List[str] = field(default_factory=list)
