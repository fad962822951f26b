from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SummaryEntry(BaseModel):
    """One cached AI summary, stored under a caller-supplied message key."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary: str
    message_type: Optional[str] = None
    message_id: Optional[str] = None
    # ISO-8601 UTC, set when the entry was last written.
    timestamp: str


class SummaryWriteRequest(BaseModel):
    # Required fields are checked by the router so a missing one is a 400.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_key: Optional[str] = None
    summary: Optional[str] = None
    message_type: Optional[str] = None
    message_id: Optional[str] = None


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: Optional[str] = None
    message_type: Optional[str] = None
