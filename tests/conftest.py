import errno
import queue
import socket
import threading
import time

import pytest


class FakeNetwork:
    """ Red multicast en memoria: entrega cada datagrama a todos los sockets
    unidos al grupo en ese puerto, incluido el que lo envió (eco).
    """

    def __init__(self):
        self.sockets = []
        self.busy_ports = set()
        self.fail_join = False
        self.fail_send = False
        self._lock = threading.Lock()

    def socket(self, family=socket.AF_INET, type=socket.SOCK_DGRAM, proto=0):
        sock = FakeSocket(self, family)
        with self._lock:
            self.sockets.append(sock)
        return sock

    def deliver(self, data, group, port, source=("127.0.0.1", 40000)):
        with self._lock:
            targets = [s for s in self.sockets
                       if not s.closed and s.port == port and group in s.groups]
        for sock in targets:
            sock.inbox.put((data, source))

    def open_sockets(self):
        return [s for s in self.sockets if not s.closed]


class FakeSocket:
    def __init__(self, network, family):
        self.network = network
        self.family = family
        self.options = {}
        self.groups = set()
        self.port = None
        self.timeout = None
        self.inbox = queue.Queue()
        self.closed = False
        self.close_calls = 0

    def setsockopt(self, level, option, value):
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        if option in (socket.IP_ADD_MEMBERSHIP, socket.IPV6_JOIN_GROUP) and level in (
                socket.IPPROTO_IP, socket.IPPROTO_IPV6):
            if self.network.fail_join:
                raise OSError(errno.ENODEV, "No such device")
            self.groups.add(self._group_from(level, value))
            return
        if option in (socket.IP_DROP_MEMBERSHIP, socket.IPV6_LEAVE_GROUP) and level in (
                socket.IPPROTO_IP, socket.IPPROTO_IPV6):
            self.groups.discard(self._group_from(level, value))
            return
        self.options[(level, option)] = value

    @staticmethod
    def _group_from(level, mreq):
        if level == socket.IPPROTO_IPV6:
            return socket.inet_ntop(socket.AF_INET6, mreq[:16])
        return socket.inet_ntoa(mreq[:4])

    def bind(self, address):
        if address[1] in self.network.busy_ports:
            raise OSError(errno.EADDRINUSE, "Address already in use")
        self.port = address[1]

    def settimeout(self, timeout):
        self.timeout = timeout

    def sendto(self, data, address):
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        if self.network.fail_send:
            raise OSError(errno.ENETUNREACH, "Network is unreachable")
        self.network.deliver(bytes(data), address[0], address[1])
        return len(data)

    def recvfrom(self, bufsize):
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        try:
            item = self.inbox.get(timeout=self.timeout)
        except queue.Empty:
            raise socket.timeout("timed out")
        if item is None:
            return b"", None
        data, source = item
        return data[:bufsize], source

    def shutdown(self, how):
        self.inbox.put(None)
        raise OSError(errno.ENOTCONN, "Transport endpoint is not connected")

    def close(self):
        self.close_calls += 1
        self.closed = True
        self.inbox.put(None)


class LineCollector:
    """ Sink de prueba: guarda las líneas que se mostrarían al usuario. """

    def __init__(self):
        self.lines = []
        self._lock = threading.Lock()

    def __call__(self, line):
        with self._lock:
            self.lines.append(line)

    def snapshot(self):
        with self._lock:
            return list(self.lines)


def wait_for(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def collector():
    return LineCollector()
