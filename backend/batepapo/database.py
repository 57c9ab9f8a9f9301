"""Storage backends.

Both backends expose the same two collections: ``participants`` keyed by
name and ``messages`` keyed by a store-assigned id. The chat core only talks
to these collection objects.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import DuplicateKey, StoreUnavailable
from .models import BROADCAST, MESSAGE, ChatEvent, Participant

logger = logging.getLogger(__name__)


class ParticipantCollection(ABC):
    @abstractmethod
    def insert_one(self, participant: Participant) -> None:
        """Insert a participant, raising DuplicateKey if the name exists."""

    @abstractmethod
    def find(self) -> List[Participant]:
        ...

    @abstractmethod
    def find_one(self, name: str) -> Optional[Participant]:
        ...

    @abstractmethod
    def touch(self, name: str, last_seen: int) -> bool:
        """Set last_seen, returning False when the name is unknown."""

    @abstractmethod
    def delete_stale(self, cutoff: int) -> List[Participant]:
        """Remove and return every participant with last_seen <= cutoff."""


class MessageCollection(ABC):
    @abstractmethod
    def insert_one(self, event: Dict) -> ChatEvent:
        ...

    @abstractmethod
    def insert_many(self, events: Iterable[Dict]) -> List[ChatEvent]:
        ...

    @abstractmethod
    def find_visible(self, user: str, limit: int) -> List[ChatEvent]:
        """Latest ``limit`` events visible to ``user``, oldest first."""

    @abstractmethod
    def find_one(self, message_id: str) -> Optional[ChatEvent]:
        ...

    @abstractmethod
    def update_text(self, message_id: str, text: str) -> bool:
        ...

    @abstractmethod
    def delete_one(self, message_id: str) -> bool:
        ...


class Store(ABC):
    participants: ParticipantCollection
    messages: MessageCollection

    @abstractmethod
    def close(self) -> None:
        ...


@contextmanager
def store_errors(operation: str, *driver_errors):
    """Log driver failures and re-raise them as StoreUnavailable."""
    try:
        yield
    except DuplicateKey:
        raise
    except driver_errors as e:
        logger.error(f"{operation} error: {e}")
        raise StoreUnavailable(f"{operation} failed") from e


# SQLite

SCHEMA = """
CREATE TABLE IF NOT EXISTS participants (
    name TEXT PRIMARY KEY,
    last_seen INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender TEXT NOT NULL,
    recipient TEXT NOT NULL,
    text TEXT NOT NULL,
    type TEXT NOT NULL,
    time TEXT NOT NULL
);
"""


def _row_to_participant(row) -> Participant:
    return Participant(name=row["name"], last_seen=row["last_seen"])


def _row_to_event(row) -> ChatEvent:
    return ChatEvent(
        id=str(row["id"]),
        sender=row["sender"],
        to=row["recipient"],
        text=row["text"],
        kind=row["type"],
        time=row["time"],
    )


def _parse_row_id(message_id: str) -> Optional[int]:
    try:
        return int(message_id)
    except (TypeError, ValueError):
        return None


class SQLiteParticipants(ParticipantCollection):
    def __init__(self, store: "SQLiteStore"):
        self._store = store

    def insert_one(self, participant: Participant) -> None:
        with self._store.transaction("Insert participant") as conn:
            try:
                conn.execute(
                    "INSERT INTO participants (name, last_seen) VALUES (?, ?)",
                    (participant.name, participant.last_seen),
                )
            except sqlite3.IntegrityError:
                raise DuplicateKey(participant.name)

    def find(self) -> List[Participant]:
        with self._store.transaction("List participants") as conn:
            rows = conn.execute(
                "SELECT name, last_seen FROM participants ORDER BY rowid"
            ).fetchall()
        return [_row_to_participant(row) for row in rows]

    def find_one(self, name: str) -> Optional[Participant]:
        with self._store.transaction("Get participant") as conn:
            row = conn.execute(
                "SELECT name, last_seen FROM participants WHERE name = ?", (name,)
            ).fetchone()
        return _row_to_participant(row) if row else None

    def touch(self, name: str, last_seen: int) -> bool:
        with self._store.transaction("Update participant") as conn:
            cursor = conn.execute(
                "UPDATE participants SET last_seen = ? WHERE name = ?",
                (last_seen, name),
            )
        return cursor.rowcount == 1

    def delete_stale(self, cutoff: int) -> List[Participant]:
        with self._store.transaction("Delete stale participants") as conn:
            rows = conn.execute(
                "SELECT name, last_seen FROM participants WHERE last_seen <= ? ORDER BY rowid",
                (cutoff,),
            ).fetchall()
            conn.execute("DELETE FROM participants WHERE last_seen <= ?", (cutoff,))
        return [_row_to_participant(row) for row in rows]


class SQLiteMessages(MessageCollection):
    def __init__(self, store: "SQLiteStore"):
        self._store = store

    @staticmethod
    def _insert(conn, event: Dict) -> ChatEvent:
        cursor = conn.execute(
            """
            INSERT INTO messages (sender, recipient, text, type, time)
            VALUES (?, ?, ?, ?, ?)
            """,
            (event["from"], event["to"], event["text"], event["type"], event["time"]),
        )
        return ChatEvent(id=str(cursor.lastrowid), **event)

    def insert_one(self, event: Dict) -> ChatEvent:
        with self._store.transaction("Insert message") as conn:
            return self._insert(conn, event)

    def insert_many(self, events: Iterable[Dict]) -> List[ChatEvent]:
        with self._store.transaction("Insert messages") as conn:
            return [self._insert(conn, event) for event in events]

    def find_visible(self, user: str, limit: int) -> List[ChatEvent]:
        with self._store.transaction("Get messages") as conn:
            rows = conn.execute(
                """
                SELECT * FROM (
                    SELECT * FROM messages
                    WHERE sender = ? OR recipient IN (?, ?) OR type = ?
                    ORDER BY id DESC
                    LIMIT ?
                ) ORDER BY id ASC
                """,
                (user, user, BROADCAST, MESSAGE, limit),
            ).fetchall()
        return [_row_to_event(row) for row in rows]

    def find_one(self, message_id: str) -> Optional[ChatEvent]:
        row_id = _parse_row_id(message_id)
        if row_id is None:
            return None
        with self._store.transaction("Get message") as conn:
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (row_id,)).fetchone()
        return _row_to_event(row) if row else None

    def update_text(self, message_id: str, text: str) -> bool:
        row_id = _parse_row_id(message_id)
        if row_id is None:
            return False
        with self._store.transaction("Update message") as conn:
            cursor = conn.execute(
                "UPDATE messages SET text = ? WHERE id = ?", (text, row_id)
            )
        return cursor.rowcount == 1

    def delete_one(self, message_id: str) -> bool:
        row_id = _parse_row_id(message_id)
        if row_id is None:
            return False
        with self._store.transaction("Delete message") as conn:
            cursor = conn.execute("DELETE FROM messages WHERE id = ?", (row_id,))
        return cursor.rowcount == 1


class SQLiteStore(Store):
    def __init__(self, db_path: str = "batepapo.db"):
        """Open the database and create the tables"""
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA)
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database setup error: {e}")
            raise StoreUnavailable("database setup failed") from e
        self.participants = SQLiteParticipants(self)
        self.messages = SQLiteMessages(self)

    @contextmanager
    def transaction(self, operation: str):
        """Run a block under the connection lock, committing on success."""
        with self._lock, store_errors(operation, sqlite3.Error):
            try:
                yield self.conn
            except BaseException:
                self.conn.rollback()
                raise
            self.conn.commit()

    def close(self):
        """Close the database connection"""
        with self._lock:
            self.conn.close()


# MongoDB

class MongoParticipants(ParticipantCollection):
    def __init__(self, collection):
        self.collection = collection

    @staticmethod
    def _to_participant(doc) -> Participant:
        return Participant(name=doc["name"], last_seen=doc["lastSeen"])

    def insert_one(self, participant: Participant) -> None:
        with store_errors("Insert participant", PyMongoError):
            try:
                self.collection.insert_one(participant.to_dict())
            except DuplicateKeyError:
                raise DuplicateKey(participant.name)

    def find(self) -> List[Participant]:
        with store_errors("List participants", PyMongoError):
            return [self._to_participant(doc) for doc in self.collection.find()]

    def find_one(self, name: str) -> Optional[Participant]:
        with store_errors("Get participant", PyMongoError):
            doc = self.collection.find_one({"name": name})
        return self._to_participant(doc) if doc else None

    def touch(self, name: str, last_seen: int) -> bool:
        with store_errors("Update participant", PyMongoError):
            result = self.collection.update_one(
                {"name": name}, {"$set": {"lastSeen": last_seen}}
            )
        return result.matched_count == 1

    def delete_stale(self, cutoff: int) -> List[Participant]:
        stale_filter = {"lastSeen": {"$lte": cutoff}}
        removed = []
        with store_errors("Delete stale participants", PyMongoError):
            names = [doc["name"] for doc in self.collection.find(stale_filter, {"name": 1})]
            for name in names:
                # A heartbeat that landed after the scan keeps the participant.
                doc = self.collection.find_one_and_delete({"name": name, **stale_filter})
                if doc:
                    removed.append(self._to_participant(doc))
        return removed


class MongoMessages(MessageCollection):
    def __init__(self, collection):
        self.collection = collection

    @staticmethod
    def _to_event(doc) -> ChatEvent:
        return ChatEvent(
            id=str(doc["_id"]),
            sender=doc["from"],
            to=doc["to"],
            text=doc["text"],
            kind=doc["type"],
            time=doc["time"],
        )

    @staticmethod
    def _object_id(message_id: str):
        if not ObjectId.is_valid(message_id):
            return None
        return ObjectId(message_id)

    def insert_one(self, event: Dict) -> ChatEvent:
        doc = dict(event)
        with store_errors("Insert message", PyMongoError):
            result = self.collection.insert_one(doc)
        return ChatEvent(id=str(result.inserted_id), **event)

    def insert_many(self, events: Iterable[Dict]) -> List[ChatEvent]:
        events = list(events)
        if not events:
            return []
        with store_errors("Insert messages", PyMongoError):
            result = self.collection.insert_many([dict(event) for event in events])
        return [
            ChatEvent(id=str(inserted_id), **event)
            for inserted_id, event in zip(result.inserted_ids, events)
        ]

    def find_visible(self, user: str, limit: int) -> List[ChatEvent]:
        query = {
            "$or": [
                {"from": user},
                {"to": {"$in": [user, BROADCAST]}},
                {"type": MESSAGE},
            ]
        }
        with store_errors("Get messages", PyMongoError):
            docs = list(self.collection.find(query).sort("_id", DESCENDING).limit(limit))
        return [self._to_event(doc) for doc in reversed(docs)]

    def find_one(self, message_id: str) -> Optional[ChatEvent]:
        object_id = self._object_id(message_id)
        if object_id is None:
            return None
        with store_errors("Get message", PyMongoError):
            doc = self.collection.find_one({"_id": object_id})
        return self._to_event(doc) if doc else None

    def update_text(self, message_id: str, text: str) -> bool:
        object_id = self._object_id(message_id)
        if object_id is None:
            return False
        with store_errors("Update message", PyMongoError):
            result = self.collection.update_one({"_id": object_id}, {"$set": {"text": text}})
        return result.matched_count == 1

    def delete_one(self, message_id: str) -> bool:
        object_id = self._object_id(message_id)
        if object_id is None:
            return False
        with store_errors("Delete message", PyMongoError):
            result = self.collection.delete_one({"_id": object_id})
        return result.deleted_count == 1


class MongoStore(Store):
    def __init__(self, uri: str = "mongodb://localhost:27017", database: str = "batepapo", client=None):
        self.client = client if client is not None else MongoClient(uri)
        db = self.client[database]
        with store_errors("Database setup", PyMongoError):
            db.participants.create_index([("name", ASCENDING)], unique=True)
        self.participants = MongoParticipants(db.participants)
        self.messages = MongoMessages(db.messages)

    def close(self):
        self.client.close()


def open_store(settings: Dict) -> Store:
    """Build the backend named by the ``storage`` config section."""
    backend = settings.get("backend", "sqlite")
    if backend == "sqlite":
        return SQLiteStore(settings.get("sqlite_path", "batepapo.db"))
    if backend == "mongo":
        return MongoStore(
            settings.get("mongo_uri", "mongodb://localhost:27017"),
            settings.get("mongo_database", "batepapo"),
        )
    raise ValueError(f"Unknown storage backend: {backend}")
