class ChatError(Exception):
    """ Error base del chat. Indica qué operación falló y por qué. """

    def __init__(self, operation: str, cause):
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.cause = cause


class SetupError(ChatError):
    """ Errores fatales antes de crear la sesión. """


class InvalidAddress(SetupError):
    pass


class InvalidPort(SetupError):
    pass


class InvalidDisplayName(SetupError):
    pass


class SocketError(ChatError):
    """ Fallo en el ciclo de vida del socket (bind, join, leave). """


class SendError(ChatError):
    pass


class MessageTooLong(SendError):
    pass


class SessionClosed(ChatError):
    """ La sesión ya salió del grupo. Es la señal esperada tras el cierre. """

    def __init__(self, operation="recepción", cause="la sesión está cerrada"):
        super().__init__(operation, cause)


class TransportError(ChatError):
    """ Fallo inesperado al recibir. Si fatal es True el socket ya no sirve. """

    def __init__(self, operation: str, cause, fatal: bool = False):
        super().__init__(operation, cause)
        self.fatal = fatal


class ReceiveTimeout(ChatError):

    def __init__(self, timeout: float):
        super().__init__("recepción", f"sin datagramas en {timeout} segundos")
        self.timeout = timeout
