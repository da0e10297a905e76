import os
import sys
_HERE = os.path.dirname(__file__)
_ROOT = os.path.abspath(os.path.join(_HERE, os.pardir))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

import fakeredis
import mongomock
import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError

# ---------- Environment for tests ----------
@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("MONGODB_DB", "seen_test_db")
    monkeypatch.setenv("REDIS_HOST", "localhost")
    monkeypatch.setenv("REDIS_PORT", "6379")
    monkeypatch.setenv("REDIS_DB", "0")
    monkeypatch.setenv("REDIS_DECODE_RESPONSES", "1")
    yield

# ---------- Fake Redis client wired into RedisClient ----------
@pytest.fixture()
def fake_redis(monkeypatch):
    r = fakeredis.FakeStrictRedis(decode_responses=True)
    from utils import redis_client as rc

    class DummyRedisClient(rc.RedisClient):
        _instance = None

        def _connect(self):
            self.client = r

    monkeypatch.setattr(rc, "RedisClient", DummyRedisClient)
    return r

# ---------- Fake Mongo wired into MongoDB ----------
@pytest.fixture()
def fake_mongo(monkeypatch):
    import utils.mongo_client as mc
    client = mongomock.MongoClient()
    db = client[os.getenv("MONGODB_DB", "seen_test_db")]
    monkeypatch.setattr(mc.MongoDB, "get_db", classmethod(lambda cls: db))
    return db

# ---------- Deterministic time ----------
class FakeTimer:
    def __init__(self, scheduler, interval, function):
        self.scheduler = scheduler
        self.due = scheduler.now + interval * 1000
        self.function = function
        self.cancelled = False
        self.started = False
        self.daemon = False

    def start(self):
        self.started = True
        self.scheduler.timers.append(self)

    def cancel(self):
        self.cancelled = True

class FakeScheduler:
    """Millisecond clock plus a `threading.Timer` stand-in that fires on `advance`."""

    def __init__(self, start_ms: float = 1_700_000_000_000):
        self.now = start_ms
        self.timers = []

    def clock(self) -> float:
        return self.now

    def timer(self, interval, function):
        return FakeTimer(self, interval, function)

    def advance(self, ms: float):
        target = self.now + ms
        while True:
            pending = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not pending:
                break
            timer = min(pending, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = max(self.now, timer.due)
            timer.function()
        self.now = target

    def pending(self):
        return [t for t in self.timers if not t.cancelled]

@pytest.fixture()
def scheduler():
    return FakeScheduler()

# ---------- In-memory remote store ----------
class FakeSeenStore:
    """
    Seen-record store with the same contract as MongoSeenStore.

    `stale_reads` makes every existence check miss, reproducing the gap
    between another client's create and our read. `fail_with` makes every
    remote call raise.
    """

    def __init__(self, stale_reads=False, fail_with=None):
        self.records = {}
        self.stale_reads = stale_reads
        self.fail_with = fail_with
        self.calls = []

    def _call(self, name):
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def get_seen_record(self, user_id, item_id):
        self._call("get")
        if self.stale_reads:
            return None
        return self.records.get((user_id, item_id))

    def create_seen_record(self, user_id, item_id, scope_id):
        self._call("create")
        if (user_id, item_id) in self.records:
            raise DuplicateKeyError("E11000 duplicate key error")
        doc = {"user_id": user_id, "item_id": item_id, "scope_id": scope_id}
        self.records[(user_id, item_id)] = doc
        return doc

    def query_seen_records(self, user_id, scope_id=None, since=None, limit=500):
        self._call("query")
        ids = [item for (user, item), doc in self.records.items()
               if user == user_id and (not scope_id or doc["scope_id"] == scope_id)]
        return ids[:limit]

class FakeConditionalSeenStore(FakeSeenStore):
    def create_seen_record_if_absent(self, user_id, item_id, scope_id):
        self._call("create_if_absent")
        if (user_id, item_id) in self.records:
            return False
        self.records[(user_id, item_id)] = {"user_id": user_id, "item_id": item_id, "scope_id": scope_id}
        return True

@pytest.fixture()
def seen_store():
    return FakeSeenStore()

@pytest.fixture()
def network_error():
    return AutoReconnect("connection closed")
