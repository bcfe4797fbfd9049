"""
Per-chain merkletree scan progress.

The engine reports progress for two independent tracks per chain (UTXO and
TXID). Events arrive out of band through a queue and are applied as whole
record replacements, so readers never see a half-updated state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from polaris.models import ScanProgressEvent, ScanState, ScanStatus, ScanTrack, TrackState

ProgressCallback = Callable[[ScanState], None]


class ScanTracker:
    def __init__(self) -> None:
        self._states: dict[int, ScanState] = {}
        self.queue: asyncio.Queue[ScanProgressEvent] = asyncio.Queue()
        self._changed = asyncio.Event()

    def publish(self, event: ScanProgressEvent) -> None:
        """Queue an event for the consumer task. Must be called on the loop thread."""
        self.queue.put_nowait(event)

    def publish_threadsafe(
        self, event: ScanProgressEvent, loop: asyncio.AbstractEventLoop
    ) -> None:
        loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def run(self) -> None:
        """Apply queued events until cancelled."""
        while True:
            event = await self.queue.get()
            try:
                self.apply(event)
            finally:
                self.queue.task_done()

    def apply(self, event: ScanProgressEvent) -> ScanState:
        """
        Apply one progress event and wake any waiters.

        A track that reached Complete stays Complete until reset(), so a late
        Updated event from the engine cannot make a finished scan look stale.
        """
        current = self._states.get(event.chain_id) or ScanState(chain_id=event.chain_id)
        previous = current.track(event.track)

        if previous is not None and previous.status == ScanStatus.COMPLETE:
            if event.status != ScanStatus.COMPLETE:
                logger.debug(
                    f"Ignoring {event.status.value} {event.track.value} event for chain "
                    f"{event.chain_id}: scan already complete"
                )
            return current

        progress = 1.0 if event.status == ScanStatus.COMPLETE else event.progress
        track_state = TrackState(status=event.status, progress=progress)

        if event.track == ScanTrack.UTXO:
            updated = current.model_copy(update={"utxo": track_state})
        else:
            updated = current.model_copy(update={"txid": track_state})
        self._states[event.chain_id] = updated

        if event.status == ScanStatus.COMPLETE:
            logger.info(f"{event.track.value.upper()} scan complete for chain {event.chain_id}")
        else:
            logger.debug(
                f"{event.track.value.upper()} scan {event.status.value} for chain "
                f"{event.chain_id}: {progress * 100:.1f}%"
            )

        self._notify()
        return updated

    def _notify(self) -> None:
        # Swap in a fresh event so waiters re-arm on the next change
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def get_scan_state(self, chain_id: int) -> ScanState | None:
        return self._states.get(chain_id)

    def is_utxo_scan_complete(self, chain_id: int) -> bool:
        state = self._states.get(chain_id)
        return (
            state is not None
            and state.utxo is not None
            and state.utxo.status == ScanStatus.COMPLETE
        )

    def is_txid_scan_complete(self, chain_id: int) -> bool:
        state = self._states.get(chain_id)
        return (
            state is not None
            and state.txid is not None
            and state.txid.status == ScanStatus.COMPLETE
        )

    def reset(self, chain_id: int, track: ScanTrack | None = None) -> None:
        """Forget scan progress for a chain, or for one of its tracks."""
        if chain_id not in self._states:
            return
        if track is None:
            del self._states[chain_id]
        elif track == ScanTrack.UTXO:
            self._states[chain_id] = self._states[chain_id].model_copy(update={"utxo": None})
        else:
            self._states[chain_id] = self._states[chain_id].model_copy(update={"txid": None})
        self._notify()

    async def wait_for_utxo_scan(
        self,
        chain_id: int,
        cancel: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> bool:
        """
        Wait until the UTXO scan for a chain is complete.

        Wakes only when the tracker changes. Returns True on completion and
        False when ``cancel`` is set. Cancelling the calling task propagates
        CancelledError as usual.
        """
        while not self.is_utxo_scan_complete(chain_id):
            if cancel is not None and cancel.is_set():
                return False

            changed = asyncio.create_task(self._changed.wait())
            waiters: set[asyncio.Task[bool]] = {changed}
            cancelled: asyncio.Task[bool] | None = None
            if cancel is not None:
                cancelled = asyncio.create_task(cancel.wait())
                waiters.add(cancelled)

            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in waiters:
                    waiter.cancel()

            if cancel is not None and cancel.is_set():
                return self.is_utxo_scan_complete(chain_id)

            state = self._states.get(chain_id)
            if on_progress is not None and state is not None:
                on_progress(state)

        return True
