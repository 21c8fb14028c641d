"""
Port sweep: applies the L4 TCP probe across an inclusive port range and
yields open ports in ascending order.

concurrency == 1 runs one probe at a time in the calling thread.
concurrency > 1 keeps at most that many probes in flight on a thread pool
and releases results in port order, whatever order they complete in.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, Iterator, Optional

from core.config import settings
from core.models import PortRange, ProbeResult, ProbeStatus
from probers import l4_tcp

log = logging.getLogger(__name__)


class Sweep:
    """
    Single-use iterator over the open ports of one address.

    Iterating yields port numbers; results() yields every ProbeResult.
    Both draw from the same underlying scan, so a Sweep cannot be restarted.
    Setting the cancel event (or calling cancel() or close(), from any thread)
    stops new probes and makes in-flight probes give up their wait.
    """

    def __init__(
        self,
        address: str,
        port_range: PortRange,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        if concurrency is None:
            concurrency = settings.concurrency
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.address = address
        self.port_range = port_range
        self.timeout = settings.probe_timeout_s if timeout is None else timeout
        self.concurrency = concurrency
        self.probed = 0
        self.open_count = 0
        self._cancel = cancel if cancel is not None else threading.Event()
        # held while the scan generator runs; close() from another thread never waits on it
        self._lock = threading.Lock()
        self._results = self._run()

    def __iter__(self) -> "Sweep":
        return self

    def __next__(self) -> int:
        while True:
            result = self._next_result()
            if result.is_open:
                return result.port

    def _next_result(self) -> ProbeResult:
        with self._lock:
            return next(self._results)

    def results(self) -> Iterator[ProbeResult]:
        try:
            while True:
                try:
                    result = self._next_result()
                except StopIteration:
                    return
                yield result
        except GeneratorExit:
            self.close()
            raise

    def cancel(self) -> None:
        self._cancel.set()

    def close(self) -> None:
        """
        Stop the scan. Safe to call from any thread.

        From the iterating thread (or when nothing is iterating) this also waits
        for in-flight probes to release their sockets. If another thread is inside
        next() right now, that thread sees the cancel event and winds the scan
        down itself.
        """
        self._cancel.set()
        if self._lock.acquire(blocking=False):
            try:
                self._results.close()
            finally:
                self._lock.release()

    def __enter__(self) -> "Sweep":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _run(self) -> Iterator[ProbeResult]:
        log.debug(
            "sweep %s ports %d-%d, %d ports (timeout=%.3fs, concurrency=%d)",
            self.address,
            self.port_range.start,
            self.port_range.end,
            self.port_range.count,
            self.timeout,
            self.concurrency,
        )
        if self.concurrency == 1:
            runner = self._run_sequential()
        else:
            runner = self._run_concurrent()
        try:
            for result in runner:
                if result.is_open:
                    self.open_count += 1
                yield result
        finally:
            runner.close()
        if self.cancelled:
            log.info("sweep of %s cancelled after %d probes", self.address, self.probed)
        else:
            log.debug("sweep of %s done: %d probed, %d open", self.address, self.probed, self.open_count)

    def _run_sequential(self) -> Iterator[ProbeResult]:
        for port in self.port_range.ports():
            if self._cancel.is_set():
                return
            result = l4_tcp.tcp_probe(self.address, port, timeout=self.timeout, cancel=self._cancel)
            self.probed += 1
            if result.status is ProbeStatus.CANCELLED:
                return
            yield result

    def _run_concurrent(self) -> Iterator[ProbeResult]:
        ports = self.port_range.ports()
        buffered: Dict[int, ProbeResult] = {}
        expected = self.port_range.start

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="probe") as pool:
            pending = set()

            def submit_next() -> bool:
                if self._cancel.is_set():
                    return False
                port = next(ports, None)
                if port is None:
                    return False
                pending.add(pool.submit(l4_tcp.tcp_probe, self.address, port, self.timeout, self._cancel))
                return True

            try:
                while len(pending) < self.concurrency and submit_next():
                    pass

                while pending:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for fut in done:
                        result = fut.result()
                        self.probed += 1
                        buffered[result.port] = result

                    if self._cancel.is_set():
                        return

                    # release the contiguous prefix only
                    while expected in buffered and not self._cancel.is_set():
                        yield buffered.pop(expected)
                        expected += 1

                    while len(pending) < self.concurrency and submit_next():
                        pass
            except BaseException:
                # in-flight probes must leave their wait before the pool joins
                self._cancel.set()
                raise


def sweep(
    address: str,
    port_range: PortRange,
    timeout: Optional[float] = None,
    concurrency: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Sweep:
    return Sweep(address, port_range, timeout=timeout, concurrency=concurrency, cancel=cancel)
