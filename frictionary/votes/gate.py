"""In-memory per-address vote abuse heuristic."""

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from frictionary.votes.models import ALLOW, VoteDecision, VoteRecord, VoteRejectReason


logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 60 * 60
DEFAULT_MAX_VOTES_PER_WINDOW = 50
DEFAULT_MAX_ADDRESSES = 10_000


@dataclass
class _AddressHistory:
    """Votes of one remote address."""

    records: list[VoteRecord] = field(default_factory=list)
    last_seen: float = 0.0


class VoteGate:
    """Best-effort vote abuse guard keyed by remote address.

    Not a security control: a distributed or spoofing client gets through.

    Histories are kept in an LRU table bounded by ``max_addresses``. An
    address that has not voted for longer than the rate-limit window is
    forgotten, together with its duplicate-vote history.

    The table is mutated from the event loop only and needs no locking.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_votes_per_window: int = DEFAULT_MAX_VOTES_PER_WINDOW,
        max_addresses: int = DEFAULT_MAX_ADDRESSES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the gate.

        Args:
            window_seconds: Length of the trailing rate-limit window.
            max_votes_per_window: Votes one address may cast per window.
            max_addresses: Addresses tracked before the least recent is dropped.
            clock: Epoch clock, injectable for tests.
        """
        self._window_seconds = window_seconds
        self._max_votes = max_votes_per_window
        self._max_addresses = max_addresses
        self._clock = clock
        self._histories: OrderedDict[str, _AddressHistory] = OrderedDict()
        self._log = logger.bind(component="votes")

    def __len__(self) -> int:
        """Number of tracked addresses."""
        return len(self._histories)

    def check(self, remote_address: str, suggestion_id: str, sign: int) -> VoteDecision:
        """Decide whether a vote may go through, without recording it.

        Rules, in order:
        1. The sign must be exactly +1 or -1.
        2. An address without history is allowed.
        3. If the address's net vote on this suggestion plus the new sign
           reaches magnitude 2, the vote is a duplicate.
        4. If the address already cast the maximum number of votes within
           the trailing window, it is rate limited.

        Args:
            remote_address: Client address.
            suggestion_id: Identity key voted on.
            sign: Vote direction.

        Returns:
            The decision.
        """
        if isinstance(sign, bool) or sign not in (1, -1):
            return VoteDecision(VoteRejectReason.INVALID_VOTE)

        now = self._clock()
        history = self._active_history(remote_address, now)
        if history is None:
            return ALLOW

        net = sum(r.sign for r in history.records if r.suggestion_id == suggestion_id)
        if abs(net + sign) >= 2:
            return VoteDecision(VoteRejectReason.ALREADY_VOTED)

        window_start = now - self._window_seconds
        recent = sum(1 for r in history.records if r.timestamp > window_start)
        if recent >= self._max_votes:
            return VoteDecision(VoteRejectReason.RATE_LIMITED)

        return ALLOW

    def record(self, remote_address: str, suggestion_id: str, sign: int) -> None:
        """Append a vote to the address's history.

        Args:
            remote_address: Client address.
            suggestion_id: Identity key voted on.
            sign: Vote direction.
        """
        now = self._clock()
        history = self._active_history(remote_address, now)
        if history is None:
            history = _AddressHistory()
            self._histories[remote_address] = history

        history.records.append(VoteRecord(suggestion_id, sign, now))
        history.last_seen = now
        self._histories.move_to_end(remote_address)

        while len(self._histories) > self._max_addresses:
            evicted, _ = self._histories.popitem(last=False)
            self._log.debug("vote_history_evicted", remote_address=evicted)

    def admit(self, remote_address: str, suggestion_id: str, sign: int) -> VoteDecision:
        """Check a vote and record it when allowed.

        Args:
            remote_address: Client address.
            suggestion_id: Identity key voted on.
            sign: Vote direction.

        Returns:
            The decision.
        """
        decision = self.check(remote_address, suggestion_id, sign)

        if decision.allowed:
            self.record(remote_address, suggestion_id, sign)
        else:
            self._log.info(
                "vote_rejected",
                remote_address=remote_address,
                suggestion_id=suggestion_id,
                reason=decision.reason.value if decision.reason else None,
            )

        return decision

    def history(self, remote_address: str) -> list[VoteRecord]:
        """Get the recorded votes of an address."""
        history = self._active_history(remote_address, self._clock())
        return list(history.records) if history else []

    def sweep(self) -> int:
        """Forget every address inactive for longer than the window.

        Returns:
            Number of addresses evicted.
        """
        cutoff = self._clock() - self._window_seconds
        stale = [a for a, h in self._histories.items() if h.last_seen < cutoff]
        for address in stale:
            del self._histories[address]
        if stale:
            self._log.debug("vote_histories_swept", count=len(stale))
        return len(stale)

    def _active_history(self, remote_address: str, now: float) -> _AddressHistory | None:
        """Get an address's history, dropping it if it went stale."""
        history = self._histories.get(remote_address)
        if history is None:
            return None
        if now - history.last_seen > self._window_seconds:
            del self._histories[remote_address]
            return None
        return history
