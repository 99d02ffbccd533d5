from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DataSource = Literal[
    "live_scraping",
    "cached",
    "cached_fallback",
    "fallback_content",
    "emergency_fallback",
]


class SyncRequest(BaseModel):
    category: str = "general"
    limit: int = Field(10, ge=1, le=50)


class Article(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    title: str
    summary: Optional[str] = None
    category: str
    external_url: Optional[str] = None
    featured_image_url: Optional[str] = None
    publish_date: datetime
    source: str


class EventItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    category: str
    start_date: datetime
    end_date: Optional[datetime] = None
    venue_name: Optional[str] = None
    image_url: Optional[str] = None
    external_url: Optional[str] = None
    source: str


class NewsEnvelope(BaseModel):
    success: bool = True
    data: list[Article]
    source: DataSource
    timestamp: datetime
    error: Optional[str] = None


class EventsEnvelope(BaseModel):
    success: bool = True
    data: list[EventItem]
    source: DataSource
    timestamp: datetime
    error: Optional[str] = None
    total: int = 0
