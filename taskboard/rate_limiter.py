"""Per-operation, per-caller admission control.

State is kept in process, keyed by ``(operation, caller_id)``, with a bounded
least-recently-used table. Check-and-consume for one key runs under that
key's lock, so two concurrent calls can never spend the same token.

Eviction is not coordinated with those locks. A call still holding an entry
that was just evicted can race a fresh entry for the same key and spend one
extra token. This is accepted, the same way an evicted key restarts with a
full bucket or a new window.
"""
import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel

from .clock import now_ms
from .config import FixedWindowRule, RateLimitRule, TokenBucketRule

logger = logging.getLogger(__name__)

# Absorbs float drift between the advertised retry time and the refill math.
_TOKEN_EPSILON = 1e-9


class RateLimitStatus(BaseModel):
    allowed: bool
    retry_after_ms: int = 0


@dataclass
class _TokenBucketState:
    tokens: float
    last_refill: int


@dataclass
class _FixedWindowState:
    window_start: int
    count: int = 0


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    state: Optional[object] = None


def _admit_token_bucket(rule: TokenBucketRule, entry: _Entry, now: int) -> RateLimitStatus:
    state = entry.state
    if state is None:
        state = entry.state = _TokenBucketState(tokens=float(rule.capacity), last_refill=now)

    elapsed = max(0, now - state.last_refill)
    state.tokens = min(float(rule.capacity), state.tokens + elapsed / rule.period_ms * rule.rate)
    state.last_refill = now

    if state.tokens + _TOKEN_EPSILON >= 1:
        state.tokens = max(0.0, state.tokens - 1)
        return RateLimitStatus(allowed=True)

    missing = 1 - state.tokens
    retry_after = math.ceil(missing * rule.period_ms / rule.rate - _TOKEN_EPSILON)
    return RateLimitStatus(allowed=False, retry_after_ms=max(1, retry_after))


def _admit_fixed_window(rule: FixedWindowRule, entry: _Entry, now: int) -> RateLimitStatus:
    state = entry.state
    if state is None or now >= state.window_start + rule.period_ms:
        state = entry.state = _FixedWindowState(window_start=now)

    if state.count < rule.rate:
        state.count += 1
        return RateLimitStatus(allowed=True)

    retry_after = state.window_start + rule.period_ms - now
    return RateLimitStatus(allowed=False, retry_after_ms=max(1, retry_after))


class RateLimiter:
    def __init__(
        self,
        rules: Mapping[str, RateLimitRule],
        *,
        max_keys: int = 10000,
        clock: Callable[[], int] = now_ms,
    ):
        if max_keys < 1:
            raise ValueError("max_keys must be at least 1")
        self.rules: Dict[str, RateLimitRule] = dict(rules)
        self.max_keys = max_keys
        self._clock = clock
        self._entries: "OrderedDict[Tuple[str, str], _Entry]" = OrderedDict()
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _entry_for(self, key: Tuple[str, str]) -> _Entry:
        with self._registry_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
                while len(self._entries) > self.max_keys:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Rate limit state evicted key=%s", evicted)
            else:
                self._entries.move_to_end(key)
            return entry

    def admit(self, operation: str, caller_id: str) -> RateLimitStatus:
        """Try to consume one unit of ``operation`` quota for ``caller_id``.

        Raises ``KeyError`` for an operation with no configured rule.
        """
        rule = self.rules[operation]
        entry = self._entry_for((operation, caller_id))
        with entry.lock:
            now = self._clock()
            if isinstance(rule, TokenBucketRule):
                status = _admit_token_bucket(rule, entry, now)
            else:
                status = _admit_fixed_window(rule, entry, now)

        if not status.allowed:
            logger.info(
                "Rate limit hit operation=%s caller=%s retry_after_ms=%s",
                operation,
                caller_id,
                status.retry_after_ms,
            )
        return status

    def reset(self, operation: Optional[str] = None, caller_id: Optional[str] = None) -> None:
        """Drop stored state matching the given operation and/or caller."""
        with self._registry_lock:
            for key in list(self._entries):
                if operation is not None and key[0] != operation:
                    continue
                if caller_id is not None and key[1] != caller_id:
                    continue
                del self._entries[key]
