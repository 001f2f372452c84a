import logging
import socket
import threading
from typing import Callable, Optional

from .config import JOIN_ANNOUNCEMENT
from .errors import ChatError, SocketError
from .message import ParticipantIdentity
from .receiver import Receiver
from .sender import SendController
from .session import GroupSession
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


class ChatRoom:
    """ Une una sesión con su receptor, su emisor y su coordinador de cierre.

    La identidad y la bandera de terminación se crean aquí y se pasan a
    cada componente; no hay estado global compartido.
    """

    def __init__(self,
                 session: GroupSession,
                 identity: ParticipantIdentity,
                 sink: Callable[[str], None],
                 release_input: Optional[Callable[[], None]] = None,
                 announce: bool = True):
        self.session = session
        self.identity = identity
        self.sink = sink
        self.announce = announce
        self.terminated = threading.Event()
        self.coordinator = ShutdownCoordinator(
            session, identity, self.terminated, release_input, announce
        )
        self.receiver = Receiver(session, identity, self.terminated, sink)
        self.sender = SendController(
            session, identity, self.terminated, sink, self.coordinator.request_shutdown
        )

    @classmethod
    def open(cls, group: str, port, display_name: str, sink: Callable[[str], None],
             release_input: Optional[Callable[[], None]] = None, announce: bool = True,
             socket_factory=socket.socket) -> "ChatRoom":
        identity = ParticipantIdentity(display_name)
        session = GroupSession.open(group, port, socket_factory=socket_factory)
        try:
            session.join()
        except SocketError:
            session.leave()
            raise
        return cls(session, identity, sink, release_input, announce)

    def start(self, spawn_receiver: bool = True):
        if spawn_receiver:
            self.receiver.start()
        if self.announce:
            try:
                self.sender.announce(JOIN_ANNOUNCEMENT.format(name=self.identity.display_name))
            except ChatError as e:
                logger.warning("[ChatRoom] No se pudo anunciar la entrada: %s", e)
                self.sink(f"[ERROR] {e}")
        logger.info("[ChatRoom] %s conectado a %s:%s", self.identity.display_name,
                    self.session.group, self.session.port)

    def submit(self, text: str) -> bool:
        return self.sender.submit(text)

    def close(self, reason: str = "") -> bool:
        return self.coordinator.request_shutdown(reason)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """ Espera a que el cierre termine y a que el receptor salga de su ciclo. """
        if not self.coordinator.wait_closed(timeout):
            return False
        return self.receiver.join(timeout)

    @property
    def running(self) -> bool:
        return self.coordinator.running
