"""
Conversation state store - current document and chat history per conversation.

In-memory storage with TTL expiry and a max-entries cap by default; Redis
(JSON values with SETEX TTL) when Redis is available.
"""
import asyncio
import json
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from config import get_redis_client, settings
from logging_config import logger
from models import DocumentState


@dataclass
class ConversationRecord:
    """Stored state of one editing conversation"""
    document: DocumentState = field(default_factory=DocumentState)
    messages: List[Dict[str, Any]] = field(default_factory=list)
    updated_at: float = field(default_factory=time.time)

    def sync_document(
        self,
        html: Optional[str] = None,
        css: Optional[str] = None,
        javascript: Optional[str] = None,
    ) -> DocumentState:
        """Overwrite only the fields the client actually sent"""
        self.document = DocumentState(
            html=html if html is not None else self.document.html,
            css=css if css is not None else self.document.css,
            javascript=javascript if javascript is not None else self.document.javascript,
        )
        return self.document

    def append_exchange(self, user_message: str, assistant_message: str, max_history: int) -> None:
        self.messages.append({"role": "user", "content": user_message})
        self.messages.append({"role": "assistant", "content": assistant_message})
        if max_history and len(self.messages) > max_history:
            self.messages = self.messages[-max_history:]
        self.updated_at = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document": self.document.to_dict(),
            "messages": self.messages,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationRecord":
        document = data.get("document") or {}
        return cls(
            document=DocumentState(
                html=document.get("html", ""),
                css=document.get("css", ""),
                javascript=document.get("javascript", ""),
            ),
            messages=list(data.get("messages") or []),
            updated_at=data.get("updated_at") or time.time(),
        )


class _ConversationLock:
    """asyncio.Lock plus the number of requests holding or waiting for it"""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class ConversationStore:
    """Store interface: get / put records and serialise work per conversation"""

    def __init__(self):
        self._locks: Dict[str, _ConversationLock] = {}

    def get(self, conversation_id: str) -> Optional[ConversationRecord]:
        raise NotImplementedError

    def put(self, conversation_id: str, record: ConversationRecord) -> None:
        raise NotImplementedError

    def get_or_create(self, conversation_id: str) -> ConversationRecord:
        return self.get(conversation_id) or ConversationRecord()

    @asynccontextmanager
    async def lock(self, conversation_id: str) -> AsyncIterator[None]:
        """
        Per-conversation lock around read-modify-write of the document.

        The entry is dropped once no request holds or awaits it.
        """
        entry = self._locks.get(conversation_id)
        if entry is None:
            entry = self._locks[conversation_id] = _ConversationLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[conversation_id]


class InMemoryConversationStore(ConversationStore):
    """Process-local store with TTL expiry and oldest-first eviction"""

    def __init__(
        self,
        ttl_seconds: int = None,
        max_entries: int = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self.ttl_seconds = settings.CONVERSATION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.CONVERSATION_MAX_ENTRIES if max_entries is None else max_entries
        self._clock = clock
        self._records: "OrderedDict[str, ConversationRecord]" = OrderedDict()
        self._stored_at: Dict[str, float] = {}

    def _expired(self, conversation_id: str) -> bool:
        stored_at = self._stored_at.get(conversation_id, 0)
        return bool(self.ttl_seconds) and self._clock() - stored_at > self.ttl_seconds

    def _drop(self, conversation_id: str) -> None:
        self._records.pop(conversation_id, None)
        self._stored_at.pop(conversation_id, None)

    def get(self, conversation_id: str) -> Optional[ConversationRecord]:
        if conversation_id not in self._records:
            return None
        if self._expired(conversation_id):
            logger.info(f"Conversation {conversation_id} expired")
            self._drop(conversation_id)
            return None
        return self._records[conversation_id]

    def put(self, conversation_id: str, record: ConversationRecord) -> None:
        self._records[conversation_id] = record
        self._records.move_to_end(conversation_id)
        self._stored_at[conversation_id] = self._clock()

        while self.max_entries and len(self._records) > self.max_entries:
            oldest = next(iter(self._records))
            logger.info(f"Evicting conversation {oldest} (store full)")
            self._drop(oldest)

    def __len__(self) -> int:
        return len(self._records)


class RedisConversationStore(ConversationStore):
    """Redis-backed store; records are JSON with a TTL"""

    KEY_PREFIX = "conversation:"

    def __init__(self, client, ttl_seconds: int = None):
        super().__init__()
        self.client = client
        self.ttl_seconds = settings.CONVERSATION_TTL_SECONDS if ttl_seconds is None else ttl_seconds

    def _key(self, conversation_id: str) -> str:
        return f"{self.KEY_PREFIX}{conversation_id}"

    def get(self, conversation_id: str) -> Optional[ConversationRecord]:
        raw = self.client.get(self._key(conversation_id))
        if not raw:
            return None
        try:
            return ConversationRecord.from_dict(json.loads(raw))
        except ValueError as e:
            logger.warning(f"Discarding unreadable conversation {conversation_id}: {e}")
            return None

    def put(self, conversation_id: str, record: ConversationRecord) -> None:
        payload = json.dumps(record.to_dict())
        if self.ttl_seconds:
            self.client.setex(self._key(conversation_id), self.ttl_seconds, payload)
        else:
            self.client.set(self._key(conversation_id), payload)


# Global store instance
_conversation_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Get or create the conversation store (Redis when available)"""
    global _conversation_store
    if _conversation_store is None:
        redis_client = get_redis_client()
        if redis_client:
            logger.info("Using Redis conversation store")
            _conversation_store = RedisConversationStore(redis_client)
        else:
            logger.info("Using in-memory conversation store")
            _conversation_store = InMemoryConversationStore()
    return _conversation_store
