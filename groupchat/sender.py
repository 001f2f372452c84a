import logging
import threading
from typing import Callable

from .config import TERMINATE_KEYWORD
from .errors import MessageTooLong, SendError
from .message import ChatMessage, ParticipantIdentity
from .session import GroupSession

logger = logging.getLogger(__name__)


class SendController:
    """ Recibe las líneas que escribe el usuario y las envía al grupo.

    El mensaje propio se muestra una sola vez, al enviarlo (eco local);
    el Receiver descarta la copia que regresa por la red.
    """

    def __init__(self,
                 session: GroupSession,
                 identity: ParticipantIdentity,
                 terminated: threading.Event,
                 sink: Callable[[str], None],
                 on_terminate: Callable[[str], object],
                 keyword: str = TERMINATE_KEYWORD):
        self.session = session
        self.identity = identity
        self.terminated = terminated
        self.sink = sink
        self.on_terminate = on_terminate # Dispara el cierre coordinado
        self.keyword = keyword

    def submit(self, text: str) -> bool:
        """ Procesa una línea. Retorna False cuando ya no se debe pedir más entrada. """
        if self.terminated.is_set():
            return False
        if text is None or not text.strip():
            return True
        if text.strip().lower() == self.keyword.lower():
            logger.info("[Emisor] Comando de salida recibido.")
            self.on_terminate("comando de salida")
            return False

        try:
            message = ChatMessage.compose(self.identity.display_name, text.rstrip("\r\n"))
        except MessageTooLong as e:
            self.sink(f"[ERROR] {e}")
            return True

        self.sink(message.text)
        try:
            self.session.send(message)
        except SendError as e:
            if self.terminated.is_set():
                logger.debug("[Emisor] Envío descartado durante el cierre: %s", e)
                return False
            logger.error("[Emisor] %s", e)
            self.sink(f"[ERROR] {e}")
        return True

    def announce(self, text: str):
        """ Envía un anuncio (unirse/salir) sin mostrarlo localmente. """
        message = ChatMessage.announcement(text)
        self.session.send(message)
