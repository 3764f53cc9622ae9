from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .models import Turn

logger = logging.getLogger("solutions_hub.sessions")


@dataclass
class _Session:
    turns: List[Turn] = field(default_factory=list)
    updated_at: float = 0.0
    seq: int = 0


class SessionStore:
    """Process-local conversation history keyed by session id."""

    def __init__(
        self,
        max_turns: int = 20,
        max_sessions: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Purpose: Initialize the store with its bounds and eviction policy.
        Inputs/Outputs: Inputs are the per-session turn cap, the session cap,
            the idle TTL in seconds, and a clock; no return value.
        Side Effects / State: Creates an empty in-memory session map.
        Dependencies: Turn model; clock defaults to time.monotonic.
        Failure Modes: None; a falsy max_sessions/ttl disables that policy.
        If Removed: Conversation history is lost between turns.
        Testing Notes: Inject a fake clock to exercise TTL expiry.
        """
        self._max_turns = max_turns
        self._max_sessions = max_sessions
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, _Session] = {}
        self._seq = 0

    def get(self, session_id: str) -> List[Turn]:
        """Purpose: Return a copy of the turns stored for a session.
        Inputs/Outputs: Input is session_id; output is a list of Turn (empty if absent).
        Side Effects / State: Purges expired sessions first.
        Failure Modes: None.
        If Removed: Follow-up turns lose their earlier context.
        Testing Notes: Two calls without intervening appends return equal lists.
        """
        self._purge_expired()
        session = self._sessions.get(session_id)
        if session is None:
            return []
        return list(session.turns)

    def append(self, session_id: str, turn: Turn) -> None:
        """Purpose: Append a turn and keep only the most recent max_turns.
        Inputs/Outputs: Inputs are session_id and a Turn; no return value.
        Side Effects / State: Creates the session implicitly and refreshes its
            activity time; may evict least-recently active sessions.
        Failure Modes: None.
        If Removed: Sessions keep no history and grow without bound if appended elsewhere.
        Testing Notes: Append more than max_turns and verify the oldest are dropped.
        """
        # Stamp, append, truncate, then enforce the session cap.
        self._purge_expired()
        now = self._clock()
        if not turn.timestamp:
            turn = turn.model_copy(update={"timestamp": time.time()})
        session = self._sessions.setdefault(session_id, _Session())
        session.turns.append(turn)
        if self._max_turns and len(session.turns) > self._max_turns:
            del session.turns[: len(session.turns) - self._max_turns]
        session.updated_at = now
        self._seq += 1
        session.seq = self._seq
        self._prune_sessions()

    def clear(self, session_id: str) -> bool:
        """Purpose: Remove one session entirely.
        Inputs/Outputs: Input is session_id; returns True if it existed.
        Side Effects / State: Other sessions are untouched.
        If Removed: Users cannot reset a conversation.
        """
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("session=%s cleared", session_id)
        return removed

    def stats(self) -> Dict[str, int]:
        """Active session count and total stored turns, after expiring idle sessions."""
        self._purge_expired()
        return {
            "active_sessions": len(self._sessions),
            "total_messages": sum(len(session.turns) for session in self._sessions.values()),
        }

    def _purge_expired(self) -> None:
        # Drop sessions idle for longer than the TTL.
        if not self._ttl or self._ttl <= 0:
            return
        cutoff = self._clock() - self._ttl
        expired = [sid for sid, session in self._sessions.items() if session.updated_at < cutoff]
        for session_id in expired:
            self._sessions.pop(session_id, None)
        if expired:
            logger.info("sessions_expired=%d", len(expired))

    def _prune_sessions(self) -> bool:
        """Purpose: Enforce max_sessions by dropping least-recently active sessions.
        Inputs/Outputs: No inputs; returns True if any sessions were removed.
        Side Effects / State: Mutates the session map.
        Failure Modes: None; no-op when max_sessions is unset or not exceeded.
        If Removed: Long-running processes keep every session in memory.
        """
        if not self._max_sessions or self._max_sessions <= 0:
            return False
        if len(self._sessions) <= self._max_sessions:
            return False

        ordered = sorted(self._sessions.items(), key=lambda pair: (pair[1].updated_at, pair[1].seq), reverse=True)
        keep_ids = {session_id for session_id, _ in ordered[: self._max_sessions]}
        removed = [session_id for session_id in list(self._sessions.keys()) if session_id not in keep_ids]
        for session_id in removed:
            self._sessions.pop(session_id, None)
        logger.info("sessions_evicted=%d", len(removed))
        return bool(removed)
