import argparse
import logging
import signal
import socket
import sys
import threading

from .chatroom import ChatRoom
from .config import TERMINATE_KEYWORD, setup_logging
from .errors import ChatError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SETUP_ERROR = 1

RECEIVER_JOIN_TIMEOUT = 2.0


class ConsoleIO:
    """ Entrada y salida por consola.

    La salida usa un lock porque escriben dos hilos (receptor y emisor).
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.closed = False
        self._print_lock = threading.Lock()

    def write_line(self, line: str):
        with self._print_lock:
            print(line, file=self.stdout, flush=True)

    def read_line(self) -> str:
        if self.closed:
            raise EOFError
        line = self.stdin.readline()
        if not line or self.closed:
            raise EOFError
        return line.rstrip("\n")

    def close(self):
        # No se cierra sys.stdin; solo se deja de leer
        self.closed = True


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="groupchat",
        description="Chat de grupo sobre IP multicast, sin servidor central."
    )
    parser.add_argument("group", help="Dirección del grupo multicast (p. ej. 239.0.0.1)")
    parser.add_argument("port", help="Puerto UDP (1024-65535)")
    parser.add_argument("--name", default="", help="Nombre a mostrar en el chat")
    parser.add_argument("--no-announce", action="store_true",
                        help="No anunciar la entrada y la salida del chat")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Nivel de logging (por defecto WARNING)")
    return parser.parse_args(argv)


def run(room: ChatRoom, console: ConsoleIO) -> int:
    """ Ciclo de envío: lee líneas hasta el comando de salida o el fin de la entrada. """
    try:
        room.start()
        console.write_line(f"Empieza a escribir mensajes... ('{TERMINATE_KEYWORD}' para salir)\n")
        while room.running:
            try:
                line = console.read_line()
            except EOFError:
                break
            if not room.submit(line):
                break
    except KeyboardInterrupt:
        logger.debug("[Consola] KeyboardInterrupt")
    finally:
        room.close("fin de la entrada")
        room.wait(RECEIVER_JOIN_TIMEOUT)
    return EXIT_OK


def install_signal_handlers(room: ChatRoom):
    """ SIGINT y SIGTERM interrumpen el ciclo de envío con KeyboardInterrupt.

    El manejador no toca la sesión: el cierre lo hace el ``finally`` de ``run``.
    Devuelve los manejadores anteriores para poder restaurarlos.
    """
    def signal_handler(signum, frame):
        logger.debug("Señal de terminación recibida %s", signum)
        # Con el cierre ya en curso la señal se ignora
        if room.running:
            raise KeyboardInterrupt

    return {signum: signal.signal(signum, signal_handler)
            for signum in (signal.SIGINT, signal.SIGTERM)}


def main(argv=None, socket_factory=socket.socket) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    console = ConsoleIO()
    name = args.name.strip()
    if not name:
        try:
            name = input("Ingresa tu nombre: ").strip()
        except (EOFError, KeyboardInterrupt):
            name = ""

    try:
        room = ChatRoom.open(args.group, args.port, name, sink=console.write_line,
                             release_input=console.close, announce=not args.no_announce,
                             socket_factory=socket_factory)
    except ChatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_SETUP_ERROR

    install_signal_handlers(room)
    return run(room, console)


if __name__ == "__main__":
    sys.exit(main())
