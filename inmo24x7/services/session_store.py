from __future__ import annotations

import asyncio
import copy
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, MutableMapping, Protocol

import logging

from inmo24x7.models.domain import Session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def load(self, user_id: str) -> Session: ...

    def save(self, user_id: str, session: Session) -> None: ...

    def reset(self, user_id: str) -> None: ...

    def lock(self, user_id: str): ...


class InMemorySessionStore:
    """Process-local session storage keyed by user id.

    ``load`` hands out a deep copy, so a turn that fails half way leaves the
    stored session untouched until ``save`` is called. ``lock`` serializes
    turns for the same user id; without it two concurrent turns would both
    start from the same base session and the later save would win.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._locks: MutableMapping[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def load(self, user_id: str) -> Session:
        stored = self._sessions.get(user_id)
        if stored is None:
            return Session(user_id=user_id)
        return copy.deepcopy(stored)

    def save(self, user_id: str, session: Session) -> None:
        self._sessions[user_id] = copy.deepcopy(session)

    def reset(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)
        logger.info("session.reset user_id=%s", user_id)

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        # Entries live only while a turn holds or awaits the lock
        user_lock = self._locks.get(user_id)
        if user_lock is None:
            user_lock = asyncio.Lock()
            self._locks[user_id] = user_lock
        async with user_lock:
            yield

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions
