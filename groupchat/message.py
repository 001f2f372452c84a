from typing import Optional, Tuple

from .config import MAX_PAYLOAD_BYTES, SEPARATOR
from .errors import InvalidDisplayName, MessageTooLong


class ParticipantIdentity:
    """ Nombre con el que el participante firma sus mensajes.

    Se elige una vez al iniciar la sesión y no cambia. Lo leen el emisor
    (para el prefijo) y el receptor (para descartar el eco propio).
    """
    __slots__ = ("_display_name",)

    def __init__(self, display_name: str):
        name = (display_name or "").strip()
        if not name:
            raise InvalidDisplayName("nombre", "el nombre no puede estar vacío")
        if len((name + SEPARATOR).encode("utf-8")) >= MAX_PAYLOAD_BYTES:
            raise InvalidDisplayName("nombre", f"el nombre excede {MAX_PAYLOAD_BYTES} bytes")
        self._display_name = name

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def prefix(self) -> str:
        return self._display_name + SEPARATOR

    def __repr__(self):
        return f"ParticipantIdentity({self._display_name!r})"


class ChatMessage:
    """ Un mensaje del chat tal como viaja por la red.

    El texto en la red es "<nombre>: <cuerpo>" codificado en UTF-8. Los
    anuncios (unirse/salir) no llevan remitente: su texto es el cuerpo.
    """

    def __init__(self, sender: Optional[str], body: str, raw: bytes,
                 origin: Optional[Tuple[str, int]] = None):
        self.sender = sender # None para anuncios
        self.body = body
        self.raw = raw # Bytes exactos del datagrama
        self.origin = origin # Dirección de la que llegó, si se recibió

    @classmethod
    def compose(cls, sender: str, body: str) -> "ChatMessage":
        return cls._encode(sender, body, f"{sender}{SEPARATOR}{body}")

    @classmethod
    def announcement(cls, text: str) -> "ChatMessage":
        return cls._encode(None, text, text)

    @classmethod
    def _encode(cls, sender, body, text):
        raw = text.encode("utf-8")
        if len(raw) > MAX_PAYLOAD_BYTES:
            # Se rechaza completo, nunca se corta a mitad de un carácter
            raise MessageTooLong(
                "envío",
                f"el mensaje ocupa {len(raw)} bytes (máximo {MAX_PAYLOAD_BYTES})"
            )
        return cls(sender, body, raw)

    @classmethod
    def from_wire(cls, data: bytes, origin=None) -> "ChatMessage":
        text = data.decode("utf-8", errors="replace")
        sender, sep, body = text.partition(SEPARATOR)
        if not sep:
            return cls(None, text, data, origin)
        return cls(sender, body, data, origin)

    @property
    def text(self) -> str:
        if self.sender is None:
            return self.body
        return f"{self.sender}{SEPARATOR}{self.body}"

    def is_from(self, identity: ParticipantIdentity) -> bool:
        """ True si el texto empieza con "<nombre>: " de esta identidad. """
        return self.text.startswith(identity.prefix)

    def __repr__(self):
        return f"ChatMessage({self.text!r})"
