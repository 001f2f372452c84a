import argparse
import logging
import random
import sys

from PyQt5.QtCore import QObject, QThread, pyqtSignal
from PyQt5.QtGui import QFont
from PyQt5.QtWidgets import (
    QApplication, QHBoxLayout, QInputDialog, QLineEdit, QMainWindow, QMessageBox,
    QPushButton, QTextEdit, QVBoxLayout, QWidget
)

from .chatroom import ChatRoom
from .config import DEFAULT_GROUP, DEFAULT_PORT, MAX_PORT, MIN_PORT, setup_logging
from .errors import ChatError

logger = logging.getLogger(__name__)

RECEIVER_THREAD_WAIT_MS = 2000


class LineChannel(QObject):
    """ Canal hacia la ventana. Se puede emitir desde cualquier hilo;
    Qt entrega la línea en el hilo principal.
    """
    lineReceived = pyqtSignal(str)

    def send(self, line: str):
        self.lineReceived.emit(line)


class ReceiverWorker(QObject):
    """ Ejecuta el ciclo del Receiver dentro de un QThread. """
    finished = pyqtSignal()

    def __init__(self, room: ChatRoom):
        super().__init__()
        self.room = room

    def process(self):
        self.room.receiver.run()
        self.finished.emit()


class ChatWindow(QMainWindow):
    def __init__(self, title: str):
        super().__init__()
        self.room = None
        self.receiver_thread = None
        self.receiver_worker = None

        self.setWindowTitle(title)
        self.setGeometry(100, 100, 500, 400)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout(central_widget)

        # Área de visualización de mensajes
        self.chat_display = QTextEdit()
        self.chat_display.setReadOnly(True)
        self.chat_display.setFont(QFont("SansSerif", 12))
        layout.addWidget(self.chat_display)

        # Cuadro de texto para escribir mensajes
        frame_entrada = QWidget()
        frame_entrada.setLayout(QHBoxLayout())

        self.chat_input = QLineEdit()
        self.chat_input.setFont(QFont("SansSerif", 12))
        self.chat_input.setPlaceholderText("Escribe tu mensaje aquí...")
        self.chat_input.returnPressed.connect(self.send_message)
        frame_entrada.layout().addWidget(self.chat_input)

        self.btn_send = QPushButton("Enviar")
        self.btn_send.clicked.connect(self.send_message)
        frame_entrada.layout().addWidget(self.btn_send)

        layout.addWidget(frame_entrada)

        self.channel = LineChannel()
        self.channel.lineReceived.connect(self.append_line)

    def attach(self, room: ChatRoom):
        """ Conecta la ventana con la sesión y lanza el receptor en un QThread. """
        self.room = room
        self.setWindowTitle(f"Chat de grupo - {room.identity.display_name}")

        self.receiver_worker = ReceiverWorker(room)
        self.receiver_thread = QThread()
        self.receiver_worker.moveToThread(self.receiver_thread)
        self.receiver_thread.started.connect(self.receiver_worker.process)
        self.receiver_worker.finished.connect(self.receiver_thread.quit)
        self.receiver_thread.start()

        room.start(spawn_receiver=False)

    def append_line(self, line: str):
        self.chat_display.append(line)

    def send_message(self):
        if self.room is None:
            return
        text = self.chat_input.text()
        if not text.strip():
            return
        self.chat_input.clear()
        if not self.room.submit(text):
            # Se escribió el comando de salida: el cierre ya se hizo
            self.close()

    def release_input(self):
        self.chat_input.setEnabled(False)
        self.btn_send.setEnabled(False)

    def closeEvent(self, event):
        if self.room is not None and self.room.running:
            choice = QMessageBox.question(
                self, "Confirmar salida", "¿Seguro que quieres salir?",
                QMessageBox.Yes | QMessageBox.No
            )
            if choice != QMessageBox.Yes:
                event.ignore()
                return
            self.room.close("ventana cerrada")
        if self.receiver_thread is not None:
            self.receiver_thread.quit()
            self.receiver_thread.wait(RECEIVER_THREAD_WAIT_MS)
        event.accept()


def ask_connection(args, parent=None):
    """ Pide con diálogos los datos que no llegaron por la línea de comandos.

    Retorna (grupo, puerto, nombre) o None si el usuario canceló.
    """
    group = args.group
    if not group:
        group, ok = QInputDialog.getText(parent, "Grupo multicast", "Dirección del grupo multicast:",
                                         text=DEFAULT_GROUP)
        if not ok or not group.strip():
            return None

    port = args.port
    if port is None:
        port, ok = QInputDialog.getInt(parent, "Puerto", f"Puerto ({MIN_PORT}-{MAX_PORT}):",
                                       DEFAULT_PORT, MIN_PORT, MAX_PORT)
        if not ok:
            return None

    name = args.name
    if not name:
        name, ok = QInputDialog.getText(parent, "Nombre", "Ingresa tu nombre:",
                                        text=f"User{random.randint(0, 999)}")
        if not ok or not name.strip():
            return None
    return group.strip(), port, name.strip()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="groupchat-gui",
                                     description="Ventana de chat de grupo sobre IP multicast.")
    parser.add_argument("group", nargs="?", default="", help="Dirección del grupo multicast")
    parser.add_argument("port", nargs="?", default=None, help="Puerto UDP (1024-65535)")
    parser.add_argument("--name", default="", help="Nombre a mostrar en el chat")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)

    app = QApplication(sys.argv[:1])
    connection = ask_connection(args)
    if connection is None:
        logger.info("Conexión cancelada por el usuario.")
        return 0
    group, port, name = connection

    window = ChatWindow("Chat de grupo")
    try:
        room = ChatRoom.open(group, port, name, sink=window.channel.send,
                             release_input=window.release_input)
    except ChatError as e:
        logger.error("No se pudo iniciar la sesión: %s", e)
        QMessageBox.critical(None, "Error de red", str(e))
        return 1

    window.attach(room)
    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
