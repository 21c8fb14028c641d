import errno
import socket
import time

import pytest


@pytest.fixture
def listener():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    srv.bind(("127.0.0.1", 0))
    srv.listen(64)
    yield srv.getsockname()[1]
    srv.close()


@pytest.fixture
def backlogged_port():
    """A listener whose accept queue is full, so new handshakes go unanswered."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(0)
    port = srv.getsockname()[1]
    fillers = []
    try:
        for _ in range(64):
            conn = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            fillers.append(conn)
            conn.settimeout(0.2)
            try:
                conn.connect(("127.0.0.1", port))
            except socket.timeout:
                break
            except OSError as exc:
                pytest.skip(f"cannot saturate listen backlog: {exc}")
        else:
            pytest.skip("listen backlog never filled on this host")
        yield port
    finally:
        for conn in fillers:
            conn.close()
        srv.close()


@pytest.fixture
def free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


class FakeSocket:
    def __init__(self, connect_err=errno.EINPROGRESS, so_error=0):
        self.connect_err = connect_err
        self.so_error = so_error
        self.blocking = True
        self.closed = False

    def setblocking(self, flag):
        self.blocking = flag

    def connect_ex(self, addr):
        return self.connect_err

    def getsockopt(self, level, option):
        return self.so_error

    def fileno(self):
        return 1000

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class _FakeSelector:
    def register(self, sock, events):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class StalledSelector(_FakeSelector):
    """Never reports the socket writable, like a filtered port."""

    def select(self, timeout=None):
        time.sleep(timeout)
        return []


class ReadySelector(_FakeSelector):
    def select(self, timeout=None):
        return [("key", 2)]


class BrokenSelector(_FakeSelector):
    def select(self, timeout=None):
        raise OSError(errno.EBADF, "bad file descriptor")
