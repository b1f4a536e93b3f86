"""
Ciphertext relay for the secure-channel stub.

The server never encrypts or decrypts: it keeps the handshake state and the opaque
messages clients post. With redis the state is a hash, each message a JSON string,
and a sorted set (scored by sentAt in ms) orders them. Everything expires after the
retention window and the set is trimmed to the newest `max_messages`.
"""
from __future__ import annotations

import base64
import json
import logging
import random
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flask import Flask, current_app

from app.lucien.utils import iso_now

logger = logging.getLogger(__name__)

MODE = "e2ee_stub"
NOTE = "E2EE_STUB_CIPHERTEXT_ONLY"


def state_key(engagement_id: str) -> str:
    return f"lucien:secure:channel:state:{engagement_id}"


def message_set_key(engagement_id: str) -> str:
    return f"lucien:secure:channel:messages:{engagement_id}"


def message_key(engagement_id: str, message_id: str) -> str:
    return f"lucien:secure:channel:message:{engagement_id}:{message_id}"


def _sent_at_ms(sent_at: str) -> int:
    try:
        return int(datetime.fromisoformat(sent_at.replace("Z", "+00:00")).timestamp() * 1000)
    except (AttributeError, ValueError):
        return int(time.time() * 1000)


def new_message_id() -> str:
    return f"MSG-{int(time.time() * 1000)}-{random.randint(0, 999)}"


@dataclass
class SecureChannelStore:
    server_public_key: str
    retention_seconds: int = 24 * 60 * 60
    max_messages: int = 250
    redis: Any | None = None
    _states: dict[str, dict[str, Any]] = field(default_factory=dict)
    _messages: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    _expires: dict[tuple[str, str], float] = field(default_factory=dict)

    def _initial_state(self, engagement_id: str) -> dict[str, Any]:
        return {
            "engagementId": engagement_id,
            "status": "pending",
            "mode": MODE,
            "serverPublicKey": self.server_public_key,
            "clientPublicKey": None,
            "updatedAt": iso_now(),
        }

    def _persist_state(self, state: dict[str, Any]) -> None:
        key = state_key(state["engagementId"])
        self.redis.hset(
            key,
            mapping={
                "status": state["status"],
                "serverPublicKey": state["serverPublicKey"],
                "clientPublicKey": state.get("clientPublicKey") or "",
                "updatedAt": state["updatedAt"],
                "mode": state["mode"],
            },
        )
        self.redis.expire(key, self.retention_seconds)

    def get_state(self, engagement_id: str) -> dict[str, Any]:
        if self.redis is None:
            state = self._states.get(engagement_id)
            if state is None:
                state = self._initial_state(engagement_id)
                self._states[engagement_id] = state
            return dict(state)

        stored = self.redis.hgetall(state_key(engagement_id))
        if stored and stored.get("status"):
            return {
                "engagementId": engagement_id,
                "status": stored.get("status") or "pending",
                "mode": MODE,
                "serverPublicKey": stored.get("serverPublicKey") or self.server_public_key,
                "clientPublicKey": stored.get("clientPublicKey") or None,
                "updatedAt": stored.get("updatedAt") or iso_now(),
            }
        state = self._initial_state(engagement_id)
        self._persist_state(state)
        return state

    def update_handshake(self, engagement_id: str, client_public_key: str) -> dict[str, Any]:
        state = self.get_state(engagement_id)
        state.update({"status": "ready", "clientPublicKey": client_public_key, "updatedAt": iso_now()})
        if self.redis is None:
            self._states[engagement_id] = dict(state)
        else:
            self._persist_state(state)
        return state

    def list_messages(self, engagement_id: str, cursor: str | None = None, limit: int = 50) -> tuple[list[dict[str, Any]], str | None]:
        """Return up to `limit` messages after `cursor`, oldest first, and the next cursor."""
        limit = max(1, min(limit, self.max_messages))

        if self.redis is None:
            self._prune(engagement_id)
            items = sorted(self._messages.get(engagement_id, []), key=lambda m: (_sent_at_ms(m["sentAt"]), m["id"]))
            start = 0
            if cursor:
                for i, item in enumerate(items):
                    if item["id"] == cursor:
                        start = i + 1
                        break
            page = [dict(m) for m in items[start : start + limit]]
            return page, (page[-1]["id"] if page else None)

        set_key = message_set_key(engagement_id)
        start = 0
        if cursor:
            rank = self.redis.zrank(set_key, cursor)
            if rank is not None:
                start = int(rank) + 1
        ids = self.redis.zrange(set_key, start, start + limit - 1)
        page = []
        for message_id in ids:
            raw = self.redis.get(message_key(engagement_id, message_id))
            if not isinstance(raw, str):
                continue
            try:
                page.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.warning("Dropping unreadable secure message %s/%s", engagement_id, message_id)
        return page, (page[-1]["id"] if page else None)

    def append_message(self, engagement_id: str, *, ciphertext: str, nonce: str, sender: str, sent_at: str) -> dict[str, Any]:
        message = {
            "id": new_message_id(),
            "ciphertext": ciphertext,
            "nonce": nonce,
            "sender": sender,
            "sentAt": sent_at,
        }

        if self.redis is None:
            items = self._messages.setdefault(engagement_id, [])
            items.append(message)
            self._expires[(engagement_id, message["id"])] = time.monotonic() + self.retention_seconds
            self._prune(engagement_id)
            return dict(message)

        set_key = message_set_key(engagement_id)
        self.redis.zadd(set_key, {message["id"]: _sent_at_ms(sent_at)})
        self.redis.set(message_key(engagement_id, message["id"]), json.dumps(message), ex=self.retention_seconds)
        self.redis.expire(set_key, self.retention_seconds)
        self._trim(engagement_id)
        return dict(message)

    def _prune(self, engagement_id: str) -> None:
        # in-memory counterpart of the redis TTL and trim
        now = time.monotonic()
        items = [m for m in self._messages.get(engagement_id, []) if self._expires.get((engagement_id, m["id"]), 0) > now]
        if len(items) > self.max_messages:
            items = items[len(items) - self.max_messages :]
        kept = {m["id"] for m in items}
        for m in self._messages.get(engagement_id, []):
            if m["id"] not in kept:
                self._expires.pop((engagement_id, m["id"]), None)
        self._messages[engagement_id] = items

    def _trim(self, engagement_id: str) -> None:
        set_key = message_set_key(engagement_id)
        total = int(self.redis.zcard(set_key))
        if total <= self.max_messages:
            return
        stale = self.redis.zrange(set_key, 0, total - self.max_messages - 1)
        if not stale:
            return
        self.redis.zrem(set_key, *stale)
        self.redis.delete(*[message_key(engagement_id, m) for m in stale])


def init_secure_channel(app: Flask) -> None:
    server_key = app.config.get("SECURE_CHANNEL_SERVER_PUBLIC_KEY") or base64.b64encode(secrets.token_bytes(32)).decode("ascii")
    app.extensions["secure_channel"] = SecureChannelStore(
        server_public_key=server_key,
        retention_seconds=int(app.config.get("LUCIEN_SECURE_CHANNEL_RETENTION_SECONDS") or 24 * 60 * 60),
        max_messages=int(app.config.get("LUCIEN_SECURE_CHANNEL_MAX_MESSAGES") or 250),
        redis=app.extensions.get("redis"),
    )


def get_store() -> SecureChannelStore:
    return current_app.extensions["secure_channel"]
