import logging
import threading
from typing import Callable, Optional

from .config import LEAVE_ANNOUNCEMENT
from .errors import ChatError
from .message import ChatMessage, ParticipantIdentity
from .session import LEFT, GroupSession

logger = logging.getLogger(__name__)

RUNNING = "running"
CLOSING = "closing"
CLOSED = "closed"


class ShutdownCoordinator:
    """ Cierra la sesión una sola vez, venga el pedido de donde venga.

    El pedido puede llegar del emisor (comando de salida), de la ventana
    (cerrar) o de una señal. El primero que llega con el estado en RUNNING
    hace el cierre; los demás no hacen nada.

    La bandera de terminación se activa antes de tocar el socket, para que
    el Receiver no reporte como error el cierre que provocamos nosotros.
    """

    def __init__(self,
                 session: GroupSession,
                 identity: ParticipantIdentity,
                 terminated: threading.Event,
                 release_input: Optional[Callable[[], None]] = None,
                 announce: bool = True):
        self.session = session
        self.identity = identity
        self.terminated = terminated
        self.release_input = release_input # Libera la entrada (consola o ventana)
        self.announce = announce
        self.state = RUNNING
        self.closed = threading.Event()
        self._lock = threading.Lock()

    def request_shutdown(self, reason: str = "") -> bool:
        """ Retorna True solo para la llamada que realizó el cierre. """
        with self._lock:
            if self.state != RUNNING:
                logger.debug("[Cierre] Pedido ignorado (%s), estado actual: %s", reason, self.state)
                return False
            self.state = CLOSING
            self.terminated.set()

        # Desde aquí cualquier salida, incluso por KeyboardInterrupt, termina en CLOSED
        try:
            logger.info("[Cierre] Cerrando sesión (%s)...", reason or "sin motivo")
            if self.announce:
                self._step("anuncio de salida", self._send_leave_announcement)
            self._step("salir del grupo", self.session.leave)
            if self.release_input is not None:
                self._step("liberar entrada", self.release_input)
        finally:
            if self.session.state != LEFT:
                self._step("salir del grupo", self.session.leave)
            with self._lock:
                self.state = CLOSED
            self.closed.set()
            logger.info("[Cierre] Sesión cerrada.")
        return True

    def _send_leave_announcement(self):
        text = LEAVE_ANNOUNCEMENT.format(name=self.identity.display_name)
        self.session.send(ChatMessage.announcement(text))

    def _step(self, name: str, action: Callable[[], None]):
        try:
            action()
        except ChatError as e:
            logger.warning("[Cierre] Falló '%s': %s", name, e)
        except Exception:
            logger.exception("[Cierre] Error inesperado en '%s'", name)

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        return self.closed.wait(timeout)

    @property
    def running(self) -> bool:
        return self.state == RUNNING
