import fnmatch

import pytest


class FakeRedis:
    """
    Dict-backed stand-in for the handful of redis commands the app issues.
    Expiry is recorded, not enforced.
    """

    def __init__(self):
        self.strings = {}
        self.hashes = {}
        self.zsets = {}
        self.expirations = {}

    def incr(self, key):
        self.strings[key] = int(self.strings.get(key, 0)) + 1
        return self.strings[key]

    def expire(self, key, seconds):
        self.expirations[key] = seconds
        return True

    def set(self, key, value, ex=None):
        self.strings[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    def get(self, key):
        return self.strings.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            for store in (self.strings, self.hashes, self.zsets):
                if key in store:
                    del store[key]
                    removed += 1
        return removed

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})
        return len(mapping)

    def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def _ordered(self, key):
        members = self.zsets.get(key, {})
        return [m for m, _ in sorted(members.items(), key=lambda kv: (kv[1], kv[0]))]

    def zrank(self, key, member):
        ordered = self._ordered(key)
        return ordered.index(member) if member in ordered else None

    def zrange(self, key, start, end):
        ordered = self._ordered(key)
        if end < 0:
            end = len(ordered) + end
        return ordered[start : end + 1]

    def zcard(self, key):
        return len(self.zsets.get(key, {}))

    def zrem(self, key, *members):
        zset = self.zsets.get(key, {})
        return sum(1 for m in members if zset.pop(m, None) is not None)

    def keys(self, pattern="*"):
        every = set(self.strings) | set(self.hashes) | set(self.zsets)
        return sorted(k for k in every if fnmatch.fnmatch(k, pattern))


@pytest.fixture()
def fake_redis():
    return FakeRedis()
