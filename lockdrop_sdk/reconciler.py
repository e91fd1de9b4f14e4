"""
Claim state reconciler.

Polls the destination chain for a set of claim IDs on a fixed interval and
merges the results into a local snapshot. Each tick is committed
all-or-nothing; failures keep the previously known values.
"""
import itertools
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from ._rate_limited_log import rate_limited_log
from .connectors import DestinationChainConnector
from .models import Claim, ClaimSnapshot, PollResult, VoteRequirement

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0

SnapshotListener = Callable[[ClaimSnapshot], None]


class ClaimStateReconciler:
    """
    Keeps a snapshot of claim records, the vote requirement and the
    recipient balance in sync with the destination chain.

    Overlapping polls are allowed; every poll gets an increasing tick number
    and a claim is only overwritten by a tick newer than the one that last
    wrote it. The background scheduler skips a tick while the previous one
    is still running.
    """

    def __init__(
        self,
        connector: DestinationChainConnector,
        address_provider: Optional[Callable[[], Optional[str]]] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the reconciler.

        Args:
            connector: Destination chain connector
            address_provider: Returns the address whose balance is polled
            interval: Seconds between scheduled polls
            logger: Optional logger instance
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")

        self.connector = connector
        self.address_provider = address_provider
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._snapshot = ClaimSnapshot()
        self._claim_ticks: Dict[bytes, int] = {}
        self._vote_tick = 0
        self._balance_tick = 0
        self._tick_counter = itertools.count(1)
        self._closed = False
        self._listeners: List[SnapshotListener] = []

        self._in_flight = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def snapshot(self) -> ClaimSnapshot:
        """The last committed snapshot"""
        with self._lock:
            return self._snapshot

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener called after each committed tick.

        Returns:
            A function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def poll(self, ids: Iterable[bytes]) -> PollResult:
        """
        Query the chain once for the given claim IDs and commit the result.

        A missing claim record maps to None. Transport errors are logged and
        the affected values keep their previous state. Records of IDs left
        out of the newest poll are dropped from the snapshot.

        Args:
            ids: Every claim ID currently tracked

        Returns:
            PollResult describing what this tick observed
        """
        claim_ids = list(dict.fromkeys(bytes(i) for i in ids))
        with self._lock:
            tick = next(self._tick_counter)

        claims: Dict[bytes, Optional[Claim]] = {}
        failed = set()
        for claim_id in claim_ids:
            try:
                claims[claim_id] = self.connector.get_claim(claim_id)
            except Exception as e:
                failed.add(claim_id)
                rate_limited_log(
                    f"Failed to poll claim 0x{claim_id.hex()}: {e}",
                    logger_instance=self.logger
                )

        vote_requirement: Optional[VoteRequirement] = None
        try:
            vote_requirement = self.connector.get_vote_requirement()
        except Exception as e:
            rate_limited_log(f"Failed to poll vote requirement: {e}", logger_instance=self.logger)

        balance: Optional[int] = None
        address: Optional[str] = None
        if self.address_provider:
            try:
                address = self.address_provider()
            except Exception as e:
                rate_limited_log(f"Failed to resolve balance address: {e}", logger_instance=self.logger)
        if address:
            try:
                balance = self.connector.get_balance(address)
            except Exception as e:
                rate_limited_log(f"Failed to poll balance of {address}: {e}", logger_instance=self.logger)

        result = PollResult(
            tick=tick,
            claims=claims,
            failed_ids=frozenset(failed),
            vote_requirement=vote_requirement,
            balance=balance,
        )
        self._commit(result)
        return result

    def _commit(self, result: PollResult) -> None:
        with self._lock:
            if self._closed:
                self.logger.debug("Reconciler stopped, discarding tick %d", result.tick)
                return

            previous = self._snapshot
            claims = dict(previous.claims)
            if result.tick > previous.tick:
                # The newest tick defines the tracked set
                polled = set(result.claims) | result.failed_ids
                for claim_id in [i for i in claims if i not in polled]:
                    del claims[claim_id]
                    self._claim_ticks.pop(claim_id, None)
            for claim_id, claim in result.claims.items():
                if self._claim_ticks.get(claim_id, 0) > result.tick:
                    continue
                if result.tick < previous.tick and claim_id not in claims:
                    continue
                known = claims.get(claim_id)
                if known is not None and known.complete and (claim is None or not claim.complete):
                    self.logger.warning(
                        "Ignoring regression of completed claim 0x%s in tick %d",
                        claim_id.hex(), result.tick
                    )
                    continue
                claims[claim_id] = claim
                self._claim_ticks[claim_id] = result.tick

            vote_requirement = previous.vote_requirement
            if result.vote_requirement is not None and result.tick > self._vote_tick:
                vote_requirement = result.vote_requirement
                self._vote_tick = result.tick

            balance = previous.balance
            if result.balance is not None and result.tick > self._balance_tick:
                balance = result.balance
                self._balance_tick = result.tick

            self._snapshot = ClaimSnapshot(
                claims=claims,
                vote_requirement=vote_requirement,
                balance=balance,
                tick=max(previous.tick, result.tick),
                updated_at=datetime.now(timezone.utc),
            )
            snapshot = self._snapshot
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Snapshot listener failed")

    def tick(self, ids_provider: Callable[[], Iterable[bytes]]) -> PollResult:
        """
        Run one scheduled poll unless another tick is still in flight.

        Returns:
            The poll result, or a result with skipped=True
        """
        if not self._in_flight.acquire(blocking=False):
            self.logger.debug("Previous poll still in flight, skipping tick")
            return PollResult(tick=0, skipped=True)
        try:
            return self.poll(ids_provider())
        finally:
            self._in_flight.release()

    def start(self, ids_provider: Callable[[], Iterable[bytes]], immediate: bool = True) -> None:
        """
        Start polling in a background thread.

        Args:
            ids_provider: Returns the claim IDs to poll on each tick
            immediate: Run the first tick right away instead of after one interval

        Raises:
            RuntimeError: If polling is already running
        """
        with self._lock:
            if self.running:
                raise RuntimeError("Reconciler is already running")
            self._closed = False
            # Each run owns its event so a worker left over from a timed out stop() still exits
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(ids_provider, immediate, self._stop_event),
                name="claim-reconciler",
                daemon=True,
            )
            self._thread.start()
        self.logger.info("Claim polling started (every %ss)", self.interval)

    def _run(
        self,
        ids_provider: Callable[[], Iterable[bytes]],
        immediate: bool,
        stop_event: threading.Event
    ) -> None:
        next_run = time.monotonic() + (0.0 if immediate else self.interval)
        while True:
            delay = max(0.0, next_run - time.monotonic())
            if stop_event.wait(delay):
                break
            try:
                self.tick(ids_provider)
            except Exception:
                self.logger.exception("Claim poll tick failed")

            next_run += self.interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // self.interval) + 1
                self.logger.debug("Poll overran its interval, skipping %d tick(s)", missed)
                next_run += missed * self.interval

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop polling.

        No snapshot mutation happens after this returns, even if a network
        call of the last tick is still outstanding.
        """
        with self._lock:
            self._closed = True
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("Poll thread did not exit within %ss", timeout)
        self.logger.info("Claim polling stopped")
