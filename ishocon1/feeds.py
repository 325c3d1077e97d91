"""
"Latest comments" projections: the five most recent comments of a product,
newest first, each entry a ``{'name': ..., 'content': ...}`` dict with the
content already truncated for display.

Two layouts exist. ``SlotFeed`` keeps one hash per position and shifts
positions by renaming keys; ``ListFeed`` keeps a pair of parallel lists
(names, contents) that are pushed and trimmed inside a WATCH/MULTI block.
"""

import logging

import redis

from .kvs import (
    LATEST_COMMENTS_SIZE,
    latest_content_key,
    latest_name_key,
    latest_slot_key,
)

logger = logging.getLogger(__name__)


class SlotFeed:
    """Five single-slot hashes per product; slot 0 is the newest."""

    def __init__(self, client):
        self.client = client

    def push(self, product_id, name, content):
        # Oldest first so that nothing is overwritten before it has moved;
        # whatever sat in the last slot is replaced by the rename into it.
        for slot in range(LATEST_COMMENTS_SIZE - 2, -1, -1):
            src = latest_slot_key(product_id, slot)
            if self.client.exists(src):
                self.client.rename(src, latest_slot_key(product_id, slot + 1))
        self.client.hset(latest_slot_key(product_id, 0), mapping={'name': name, 'content': content})

    def latest_many(self, product_ids):
        pipe = self.client.pipeline(transaction=False)
        for product_id in product_ids:
            for slot in range(LATEST_COMMENTS_SIZE):
                pipe.hgetall(latest_slot_key(product_id, slot))
        rows = pipe.execute()
        result = {}
        for i, product_id in enumerate(product_ids):
            chunk = rows[i * LATEST_COMMENTS_SIZE:(i + 1) * LATEST_COMMENTS_SIZE]
            result[product_id] = [
                {'name': r['name'], 'content': r['content']} for r in chunk if r
            ]
        return result

    def latest(self, product_id):
        return self.latest_many([product_id])[product_id]

    def rebuild(self, pipe, product_id, entries):
        """Queue writes for ``entries`` (newest first) on ``pipe``."""
        for slot, entry in enumerate(entries[:LATEST_COMMENTS_SIZE]):
            pipe.hset(latest_slot_key(product_id, slot), mapping=entry)


class ListFeed:
    """Parallel name/content lists per product, head is the newest."""

    def __init__(self, client):
        self.client = client

    def push(self, product_id, name, content):
        name_key = latest_name_key(product_id)
        content_key = latest_content_key(product_id)
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(name_key, content_key)
                exec_trim = pipe.llen(name_key) >= LATEST_COMMENTS_SIZE
                pipe.multi()
                pipe.lpush(name_key, name)
                pipe.lpush(content_key, content)
                if exec_trim:
                    pipe.ltrim(name_key, 0, LATEST_COMMENTS_SIZE - 1)
                    pipe.ltrim(content_key, 0, LATEST_COMMENTS_SIZE - 1)
                pipe.execute()
                return True
            except redis.WatchError:
                logger.warning(f"Latest comments for product {product_id} changed concurrently; update dropped")
                return False

    def latest_many(self, product_ids):
        pipe = self.client.pipeline(transaction=False)
        for product_id in product_ids:
            pipe.lrange(latest_name_key(product_id), 0, LATEST_COMMENTS_SIZE - 1)
            pipe.lrange(latest_content_key(product_id), 0, LATEST_COMMENTS_SIZE - 1)
        rows = pipe.execute()
        result = {}
        for i, product_id in enumerate(product_ids):
            names, contents = rows[2 * i], rows[2 * i + 1]
            result[product_id] = [
                {'name': name, 'content': content} for name, content in zip(names, contents)
            ]
        return result

    def latest(self, product_id):
        return self.latest_many([product_id])[product_id]

    def rebuild(self, pipe, product_id, entries):
        entries = entries[:LATEST_COMMENTS_SIZE]
        if not entries:
            return
        pipe.rpush(latest_name_key(product_id), *[e['name'] for e in entries])
        pipe.rpush(latest_content_key(product_id), *[e['content'] for e in entries])


def feed_for(iteration, client):
    return SlotFeed(client) if iteration == 1 else ListFeed(client)
