from .chatroom import ChatRoom
from .errors import (
    ChatError, InvalidAddress, InvalidDisplayName, InvalidPort, MessageTooLong,
    ReceiveTimeout, SendError, SessionClosed, SetupError, SocketError, TransportError
)
from .message import ChatMessage, ParticipantIdentity
from .receiver import Receiver
from .sender import SendController
from .session import GroupSession
from .shutdown import ShutdownCoordinator

__version__ = "1.0.0"
