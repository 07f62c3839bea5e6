#!/usr/bin/env python3
"""
Mirror capacity events to a Redis stream for external consumers
"""

import logging
from typing import Any, Dict, Optional

import redis.asyncio as aioredis

from .base import Event, EventHandler

logger = logging.getLogger(__name__)


def flatten_event(event: Event) -> Dict[str, str]:
    """Flatten one level of nested dictionaries into dotted stream fields"""
    flattened: Dict[str, str] = {}
    for key, value in event.to_dict().items():
        if isinstance(value, dict):
            for subkey, subvalue in value.items():
                flattened[f"{key}.{subkey}"] = str(subvalue)
        else:
            flattened[key] = str(value)
    return flattened


class RedisStreamPublisher(EventHandler):
    """Event handler that appends every event it receives to a Redis stream"""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        stream_name: str = "capacity_events",
        maxlen: int = 10000,
        max_retries: int = 2,
        client: Optional[Any] = None,
    ):
        super().__init__("redis_stream_publisher")
        self.url = url
        self.stream_name = stream_name
        self.maxlen = maxlen
        self.max_retries = max_retries
        self.redis_client = client

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis_client = aioredis.from_url(self.url, decode_responses=True)
            await self.redis_client.ping()
            logger.info(f"Connected to Redis stream {self.stream_name}")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self):
        if self.redis_client:
            await self.redis_client.close()
            self.redis_client = None
            logger.info("Disconnected from Redis stream")

    async def handle(self, event: Event) -> bool:
        if not self.redis_client:
            logger.error("Redis stream publisher not connected")
            return False

        fields = flatten_event(event)
        for attempt in range(self.max_retries + 1):
            try:
                await self.redis_client.xadd(self.stream_name, fields, maxlen=self.maxlen)
                logger.debug(f"Exported event {event.event_type.value} ({event.event_id})")
                return True
            except (aioredis.ConnectionError, aioredis.RedisError) as e:
                if attempt < self.max_retries:
                    logger.warning(
                        f"Redis connection issue (attempt {attempt + 1}/{self.max_retries + 1}), reconnecting..."
                    )
                    try:
                        await self.disconnect()
                        await self.connect()
                    except Exception as reconnect_error:
                        logger.error(f"Failed to reconnect to Redis: {reconnect_error}")
                else:
                    logger.error(
                        f"Failed to export event {event.event_type.value} after {self.max_retries + 1} attempts: {e}"
                    )
        return False
