"""
Channel and Stream data models.
Canonical shape shared by every source after normalization.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StreamHealth(str, Enum):
    """Reachability verdict for a single stream URL."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    FAILED = "failed"


class Stream(BaseModel):
    """One playable endpoint for a channel."""
    url: str = Field(min_length=1)
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    quality: Optional[str] = None
    health: StreamHealth = StreamHealth.UNVERIFIED


class Channel(BaseModel):
    """One logical TV channel from one source."""
    id: str
    name: str = Field(min_length=1)
    logo: str
    source_name: str
    country: Optional[str] = None
    categories: list[str] = Field(min_length=1)
    streams: list[Stream] = Field(min_length=1)

    @property
    def is_playable(self) -> bool:
        """True when at least one stream passed its probe."""
        return any(s.health == StreamHealth.VERIFIED for s in self.streams)
