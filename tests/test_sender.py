import threading

import pytest

from conftest import LineCollector
from groupchat.errors import SendError
from groupchat.message import ParticipantIdentity
from groupchat.sender import SendController


class RecordingSession:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)


@pytest.fixture
def controller_parts():
    session = RecordingSession()
    terminated = threading.Event()
    sink = LineCollector()
    reasons = []
    controller = SendController(session, ParticipantIdentity("Bob"), terminated, sink, reasons.append)
    return controller, session, terminated, sink, reasons


def test_message_is_prefixed_echoed_and_sent(controller_parts):
    controller, session, _, sink, _ = controller_parts
    assert controller.submit("hello\n")
    assert [m.raw for m in session.sent] == [b"Bob: hello"]
    assert sink.snapshot() == ["Bob: hello"]


@pytest.mark.parametrize("line", ["Exit", "exit", "  EXIT  ", "eXiT\n"])
def test_termination_keyword_triggers_shutdown(controller_parts, line):
    controller, session, _, sink, reasons = controller_parts
    assert controller.submit(line) is False
    assert len(reasons) == 1
    assert session.sent == []
    assert sink.snapshot() == []


def test_keyword_inside_text_is_a_normal_message(controller_parts):
    controller, session, _, _, reasons = controller_parts
    assert controller.submit("Exit now")
    assert reasons == []
    assert session.sent[0].raw == b"Bob: Exit now"


def test_blank_lines_are_ignored(controller_parts):
    controller, session, _, sink, _ = controller_parts
    assert controller.submit("   ")
    assert controller.submit("")
    assert session.sent == []
    assert sink.snapshot() == []


def test_too_long_is_reported_before_echo(controller_parts):
    controller, session, _, sink, _ = controller_parts
    assert controller.submit("a" * 2000)
    assert session.sent == []
    assert len(sink.snapshot()) == 1
    assert sink.snapshot()[0].startswith("[ERROR] envío:")


def test_send_error_is_reported_while_running(controller_parts):
    controller, session, _, sink, _ = controller_parts
    session.error = SendError("envío", "Network is unreachable")
    assert controller.submit("hola")
    assert sink.snapshot() == ["Bob: hola", "[ERROR] envío: Network is unreachable"]


def test_send_error_is_swallowed_while_closing(controller_parts):
    controller, session, terminated, sink, _ = controller_parts
    session.error = SendError("envío", "la sesión no está unida al grupo")

    # El cierre empieza entre el eco local y el envío
    def closing_sink(line):
        terminated.set()
        sink(line)

    controller.sink = closing_sink
    assert controller.submit("hola") is False
    assert sink.snapshot() == ["Bob: hola"]


def test_no_input_accepted_after_termination(controller_parts):
    controller, session, terminated, _, _ = controller_parts
    terminated.set()
    assert controller.submit("hola") is False
    assert session.sent == []


def test_announce_is_not_echoed(controller_parts):
    controller, session, _, sink, _ = controller_parts
    controller.announce("Bob se ha unido al chat.")
    assert session.sent[0].sender is None
    assert sink.snapshot() == []
