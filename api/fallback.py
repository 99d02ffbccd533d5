"""Built-in articles served when neither a live run nor the store has data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from .models import Article

_FALLBACK_ITEMS = (
    {
        "title": "Lagos Nightlife Scene Continues to Thrive",
        "summary": "The vibrant nightlife in Lagos remains a major attraction for both locals and tourists, with new venues opening across the city.",
        "category": "entertainment",
        "featured_image_url": "https://images.unsplash.com/photo-1514525253161-7a46d19cd819?w=800",
        "source": "GIDI Entertainment",
    },
    {
        "title": "New Restaurants Opening in Victoria Island",
        "summary": "Several high-end restaurants are set to open in Victoria Island, adding to Lagos's growing culinary scene.",
        "category": "food",
        "featured_image_url": "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?w=800",
        "source": "Lagos Food Guide",
    },
    {
        "title": "Weekend Events and Live Music in Lagos",
        "summary": "This weekend promises exciting events and live music performances across various venues in Lagos.",
        "category": "events",
        "featured_image_url": "https://images.unsplash.com/photo-1571019613454-1cb2f99b2d8b?w=800",
        "source": "Lagos Events",
    },
)


def fallback_articles() -> list[Article]:
    now = datetime.now(timezone.utc)
    return [Article(id=str(uuid.uuid4()), publish_date=now, **item) for item in _FALLBACK_ITEMS]
