"""
TCP connect prober using a non-blocking connect() and a deadline-bounded
writability wait. No raw packets, no DNS, IPv4 literals only.

Every failure (bad address, bad port, no socket, refused, unreachable,
timeout, cancellation) folds into a non-OPEN status; nothing is raised.
"""

import errno
import logging
import select
import selectors
import socket
import sys
import threading
import time
from typing import Callable, Optional

from pydantic import ValidationError

from core.config import settings
from core.models import ProbeOutcome, ProbeResult, ProbeStatus, Target

log = logging.getLogger(__name__)

# windows reports a failed non-blocking connect in the exception set, not the write set
_WINDOWS = sys.platform == "win32"

_IN_PROGRESS = {errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN}
if hasattr(errno, "WSAEWOULDBLOCK"):  # windows connect_ex reports winsock codes
    _IN_PROGRESS.add(errno.WSAEWOULDBLOCK)

_ERRNO_STATUS = {
    errno.ECONNREFUSED: ProbeStatus.REFUSED,
    errno.ECONNRESET: ProbeStatus.REFUSED,
    errno.ETIMEDOUT: ProbeStatus.TIMEOUT,
    errno.ENETUNREACH: ProbeStatus.UNREACHABLE,
    errno.EHOSTUNREACH: ProbeStatus.UNREACHABLE,
    errno.EADDRNOTAVAIL: ProbeStatus.UNREACHABLE,
    errno.ENETDOWN: ProbeStatus.UNREACHABLE,
    errno.EHOSTDOWN: ProbeStatus.UNREACHABLE,
}


def _classify(err: int) -> ProbeStatus:
    return _ERRNO_STATUS.get(err, ProbeStatus.ERROR)


def _open_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_STREAM)


def _rejected(exc: ValidationError) -> ProbeStatus:
    fields = {err["loc"][0] for err in exc.errors() if err["loc"]}
    if "address" in fields:
        return ProbeStatus.INVALID_ADDRESS
    return ProbeStatus.INVALID_PORT


def _wait_loop(
    ready: Callable[[float], object], timeout: float, cancel: Optional[threading.Event]
) -> Optional[ProbeStatus]:
    deadline = time.monotonic() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            return ProbeStatus.CANCELLED
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return ProbeStatus.TIMEOUT
        if cancel is not None:
            remaining = min(remaining, settings.cancel_poll_s)
        if ready(remaining):
            return None


def _wait_writable(
    sock: socket.socket, timeout: float, cancel: Optional[threading.Event]
) -> Optional[ProbeStatus]:
    """Block until the connect resolves. Returns None when ready, else the failing status."""
    try:
        if _WINDOWS:

            def resolved(t: float) -> bool:
                _, writable, failed = select.select([], [sock], [sock], t)
                return bool(writable or failed)

            return _wait_loop(resolved, timeout, cancel)

        with selectors.DefaultSelector() as sel:
            sel.register(sock, selectors.EVENT_WRITE)
            return _wait_loop(sel.select, timeout, cancel)
    except (OSError, ValueError) as exc:
        log.debug("wait failed: %s", exc)
        return ProbeStatus.ERROR


def probe_status(
    address: str,
    port: int,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ProbeStatus:
    if timeout is None:
        timeout = settings.probe_timeout_s

    try:
        target = Target(address=address, port=port)
    except ValidationError as exc:
        log.debug("rejected target %r:%r", address, port)
        return _rejected(exc)

    try:
        sock = _open_socket()
    except OSError as exc:
        log.warning("cannot allocate socket for %s:%s: %s", target.address, target.port, exc)
        return ProbeStatus.NO_RESOURCE

    with sock:
        try:
            sock.setblocking(False)
            err = sock.connect_ex((target.address, target.port))
        except OSError as exc:
            log.debug("connect to %s:%s failed: %s", target.address, target.port, exc)
            return ProbeStatus.ERROR

        if err != 0:
            if err not in _IN_PROGRESS:
                return _classify(err)
            failed = _wait_writable(sock, timeout, cancel)
            if failed is not None:
                return failed

        try:
            so_error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as exc:
            log.debug("SO_ERROR read failed for %s:%s: %s", target.address, target.port, exc)
            return ProbeStatus.ERROR
        return ProbeStatus.OPEN if so_error == 0 else _classify(so_error)


def tcp_probe(
    address: str,
    port: int,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> ProbeResult:
    start = time.perf_counter()
    status = probe_status(address, port, timeout=timeout, cancel=cancel)
    elapsed = time.perf_counter() - start
    log.debug("probe %s:%s -> %s (%.4fs)", address, port, status.value, elapsed)
    return ProbeResult(port=port, status=status, elapsed_s=round(elapsed, 4))


def probe(address: str, port: int, timeout: Optional[float] = None) -> ProbeOutcome:
    return probe_status(address, port, timeout=timeout).outcome
