import errno
import ipaddress
import logging
import platform
import socket
import struct
import threading
import time
from typing import Optional

from .config import MAX_PAYLOAD_BYTES, MAX_PORT, MIN_PORT, MULTICAST_TTL, POLL_INTERVAL
from .diagnostics import describe_port_in_use
from .errors import (
    InvalidAddress, InvalidPort, MessageTooLong, ReceiveTimeout, SendError,
    SessionClosed, SocketError, TransportError
)
from .message import ChatMessage

logger = logging.getLogger(__name__)

BOUND = "bound"
JOINED = "joined"
LEFT = "left"

# Errores de recvfrom que solo indican "intenta de nuevo"
RETRY_ERRNOS = (errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR)
# Errores que indican que el descriptor ya no sirve
FATAL_ERRNOS = (errno.EBADF, errno.ENOTSOCK)


def resolve_group(group_text: str):
    """ Resuelve la dirección del grupo y valida que sea multicast.

    Retorna (familia, dirección en texto).
    """
    if not group_text or not group_text.strip():
        raise InvalidAddress("dirección", "no se indicó la dirección del grupo")
    try:
        infos = socket.getaddrinfo(group_text.strip(), None, 0, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise InvalidAddress("dirección", f"no se pudo resolver '{group_text}': {e}") from e

    family, _, _, _, sockaddr = infos[0]
    address = sockaddr[0].split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(address)
    except ValueError as e:
        raise InvalidAddress("dirección", f"'{group_text}' no es una dirección IP") from e
    if not ip.is_multicast:
        raise InvalidAddress("dirección", f"{address} no es una dirección multicast")
    return family, str(ip)


def validate_port(port) -> int:
    if isinstance(port, bool):
        raise InvalidPort("puerto", f"puerto inválido: {port!r}")
    if isinstance(port, str):
        try:
            port = int(port.strip())
        except ValueError as e:
            raise InvalidPort("puerto", f"'{port}' no es un número") from e
    if not isinstance(port, int):
        raise InvalidPort("puerto", f"puerto inválido: {port!r}")
    if port < MIN_PORT or port > MAX_PORT:
        raise InvalidPort("puerto", f"el puerto debe estar entre {MIN_PORT} y {MAX_PORT}")
    return port


class GroupSession:
    """ Esta clase es dueña del socket multicast de un participante.

    Se crea con open() (valida dirección y puerto, crea y enlaza el socket),
    se une al grupo con join() y termina con leave(), que es idempotente y
    se puede llamar mientras otro hilo está bloqueado en receive(): ese
    receive() termina con SessionClosed en lugar de quedarse esperando.
    """

    def __init__(self, sock, group: str, port: int, family=socket.AF_INET):
        self.sock = sock # Socket multicast
        self.group = group # Dirección de grupo multicast
        self.port = port # Puerto multicast
        self.family = family
        self.state = BOUND
        self._lock = threading.Lock() # Serializa send() con leave()

    @classmethod
    def open(cls, group_text: str, port, socket_factory=socket.socket,
             ttl: int = MULTICAST_TTL) -> "GroupSession":
        family, group = resolve_group(group_text)
        port = validate_port(port)

        try:
            sock = socket_factory(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as e:
            raise SocketError("crear socket", e) from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            # REUSEPORT no está disponible en Windows
            if platform.system() != "Windows" and hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)

            if family == socket.AF_INET6:
                sock.bind(("::", port))
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, ttl)
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_LOOP, 1)
            else:
                sock.bind(("", port))
                ttl_bin = struct.pack('@i', ttl)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl_bin)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)

            sock.settimeout(POLL_INTERVAL)
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise SocketError("bind", describe_port_in_use(port)) from e
            raise SocketError("configurar socket", e) from e

        logger.debug("[GroupSession] Socket enlazado al puerto %s (TTL=%s).", port, ttl)
        return cls(sock, group, port, family)

    def _membership_request(self):
        if self.family == socket.AF_INET6:
            group_bin = socket.inet_pton(socket.AF_INET6, self.group)
            return (socket.IPPROTO_IPV6, struct.pack("16sI", group_bin, 0))
        group_bin = socket.inet_aton(self.group)
        return (socket.IPPROTO_IP, struct.pack('4sL', group_bin, socket.INADDR_ANY))

    def join(self):
        with self._lock:
            if self.state == JOINED:
                return
            if self.state == LEFT:
                raise SocketError("unirse al grupo", "la sesión ya fue cerrada")
            level, mreq = self._membership_request()
            option = socket.IPV6_JOIN_GROUP if level == socket.IPPROTO_IPV6 else socket.IP_ADD_MEMBERSHIP
            try:
                self.sock.setsockopt(level, option, mreq)
            except OSError as e:
                raise SocketError("unirse al grupo", e) from e
            self.state = JOINED
        logger.info("[GroupSession] Escuchando en grupo %s:%s.", self.group, self.port)

    def send(self, message: ChatMessage):
        if len(message.raw) > MAX_PAYLOAD_BYTES:
            raise MessageTooLong(
                "envío", f"el mensaje ocupa {len(message.raw)} bytes (máximo {MAX_PAYLOAD_BYTES})"
            )
        with self._lock:
            if self.state != JOINED:
                raise SendError("envío", "la sesión no está unida al grupo")
            try:
                self.sock.sendto(message.raw, (self.group, self.port))
            except OSError as e:
                raise SendError("envío", e) from e
        logger.debug("[ENVIADO] %s", message.text)

    def receive(self, timeout: Optional[float] = None) -> ChatMessage:
        """ Espera un datagrama del grupo.

        El socket revisa el estado cada POLL_INTERVAL segundos, así que un
        leave() desde otro hilo lo libera en tiempo acotado aunque la
        plataforma no despierte el recvfrom al cerrar.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self.state == LEFT:
                raise SessionClosed()
            if self.state != JOINED:
                raise TransportError("recepción", "la sesión no está unida al grupo", fatal=True)
            wait = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ReceiveTimeout(timeout)
                wait = min(POLL_INTERVAL, remaining)
            try:
                self.sock.settimeout(wait)
                # Un byte de más para detectar datagramas demasiado largos
                data, addr = self.sock.recvfrom(MAX_PAYLOAD_BYTES + 1)
            except socket.timeout:
                continue
            except OSError as e:
                if self.state == LEFT:
                    raise SessionClosed() from e
                if e.errno in RETRY_ERRNOS:
                    continue
                raise TransportError("recepción", e, fatal=e.errno in FATAL_ERRNOS) from e

            if self.state == LEFT:
                raise SessionClosed()
            if len(data) > MAX_PAYLOAD_BYTES:
                raise TransportError(
                    "recepción", f"datagrama de {addr} excede {MAX_PAYLOAD_BYTES} bytes"
                )
            return ChatMessage.from_wire(data, addr)

    def leave(self):
        with self._lock:
            if self.state == LEFT:
                return
            was_joined = self.state == JOINED
            self.state = LEFT
            if was_joined:
                level, mreq = self._membership_request()
                option = socket.IPV6_LEAVE_GROUP if level == socket.IPPROTO_IPV6 else socket.IP_DROP_MEMBERSHIP
                try:
                    self.sock.setsockopt(level, option, mreq)
                except OSError as e:
                    logger.warning("[GroupSession] No se pudo salir del grupo %s: %s", self.group, e)
            try:
                # Despierta a un recvfrom bloqueado en otro hilo
                self.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # UDP sin conectar responde ENOTCONN, pero igual despierta al lector
            self.sock.close()
        logger.info("[GroupSession] Sesión cerrada en grupo %s:%s.", self.group, self.port)

    @property
    def joined(self) -> bool:
        return self.state == JOINED

    def __repr__(self):
        return f"GroupSession({self.group}:{self.port}, {self.state})"
