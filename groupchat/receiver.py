import logging
import threading
from typing import Callable, Optional

from .errors import SessionClosed, TransportError
from .message import ParticipantIdentity
from .session import GroupSession

logger = logging.getLogger(__name__)

ERROR_BACKOFF = 0.1 # Segundos de espera tras un error de recepción


class Receiver:
    """ Lee los datagramas del grupo en su propio hilo y los manda al sink.

    Descarta el eco de los mensajes propios: el emisor ya los mostró al
    enviarlos, y como también está escuchando el grupo le llegan de vuelta.
    """

    def __init__(self,
                 session: GroupSession,
                 identity: ParticipantIdentity,
                 terminated: threading.Event,
                 sink: Callable[[str], None]):
        self.session = session
        self.identity = identity
        self.terminated = terminated # Bandera de terminación compartida con el coordinador
        self.sink = sink
        self.finished = threading.Event() # Se activa cuando el ciclo termina
        self.thread: Optional[threading.Thread] = None

    def start(self) -> threading.Thread:
        self.thread = threading.Thread(target=self.run, name="receptor", daemon=True)
        self.thread.start()
        return self.thread

    def join(self, timeout: Optional[float] = None) -> bool:
        if self.thread is not None:
            self.thread.join(timeout)
        return self.finished.is_set()

    def run(self):
        logger.debug("[Receptor] Iniciando proceso de escucha...")
        try:
            self._loop()
        finally:
            self.finished.set()
            logger.debug("[Receptor] Finalizando proceso de escucha.")

    def _loop(self):
        last_error = None # Último error reportado; se repite solo si cambia
        while not self.terminated.is_set():
            try:
                message = self.session.receive()
            except SessionClosed:
                if not self.terminated.is_set():
                    self.sink("[ERROR] Recepción: la conexión con el grupo se cerró inesperadamente")
                return
            except TransportError as e:
                if self.terminated.is_set():
                    return
                if e.fatal:
                    logger.warning("[Receptor] Error recibiendo: %s", e)
                    self.sink(f"[ERROR] Recepción: desconectado del grupo ({e.cause})")
                    return
                if str(e) != last_error:
                    logger.warning("[Receptor] Error recibiendo: %s", e)
                    self.sink(f"[ERROR] {e}")
                    last_error = str(e)
                else:
                    logger.debug("[Receptor] Error repetido: %s", e)
                # Espera antes de reintentar; el cierre la interrumpe
                self.terminated.wait(ERROR_BACKOFF)
                continue

            last_error = None
            if self.terminated.is_set():
                return
            if message.is_from(self.identity):
                continue
            if not message.text:
                continue
            logger.debug("[Receptor] Recibido de %s: %s", message.origin, message.text)
            self.sink(message.text)
