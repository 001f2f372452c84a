import pytest

from groupchat.config import MAX_PAYLOAD_BYTES
from groupchat.errors import InvalidDisplayName, MessageTooLong, SendError
from groupchat.message import ChatMessage, ParticipantIdentity


def test_compose_encodes_name_and_body():
    message = ChatMessage.compose("Bob", "hello")
    assert message.raw == b"Bob: hello"
    assert ChatMessage.from_wire(message.raw).text == "Bob: hello"


def test_from_wire_splits_on_first_separator():
    message = ChatMessage.from_wire("Ana: hora: 10:30".encode("utf-8"), ("10.0.0.2", 5000))
    assert message.sender == "Ana"
    assert message.body == "hora: 10:30"
    assert message.origin == ("10.0.0.2", 5000)


def test_payload_at_limit_is_accepted():
    body = "a" * (MAX_PAYLOAD_BYTES - len(b"Bob: "))
    assert len(ChatMessage.compose("Bob", body).raw) == MAX_PAYLOAD_BYTES


def test_payload_over_limit_is_rejected():
    body = "a" * (MAX_PAYLOAD_BYTES - len(b"Bob: ") + 1)
    with pytest.raises(MessageTooLong) as excinfo:
        ChatMessage.compose("Bob", body)
    assert isinstance(excinfo.value, SendError)
    assert excinfo.value.operation == "envío"


def test_multibyte_body_is_rejected_whole_not_cut():
    # 5 bytes de prefijo + 498 * 2 bytes = 1001 bytes
    with pytest.raises(MessageTooLong):
        ChatMessage.compose("Bob", "é" * 498)
    assert len(ChatMessage.compose("Bob", "é" * 497).raw) == 999


def test_announcement_has_no_sender():
    message = ChatMessage.announcement("Ana se ha unido al chat.")
    assert message.sender is None
    assert message.text == "Ana se ha unido al chat."
    assert ChatMessage.from_wire(message.raw).sender is None


def test_invalid_utf8_is_replaced():
    message = ChatMessage.from_wire(b"Bob: \xff")
    assert message.text == "Bob: �"


def test_is_from_matches_name_and_separator():
    alice = ParticipantIdentity("Alice")
    assert ChatMessage.from_wire(b"Alice: hi").is_from(alice)
    assert not ChatMessage.from_wire(b"Alicia: hi").is_from(alice)
    assert not ChatMessage.from_wire(b"Alice se ha unido al chat.").is_from(alice)


def test_identity_is_stripped_and_immutable():
    identity = ParticipantIdentity("  Carla ")
    assert identity.display_name == "Carla"
    assert identity.prefix == "Carla: "
    with pytest.raises(AttributeError):
        identity.display_name = "Otra"


@pytest.mark.parametrize("name", ["", "   ", None, "x" * MAX_PAYLOAD_BYTES])
def test_identity_rejects_bad_names(name):
    with pytest.raises(InvalidDisplayName):
        ParticipantIdentity(name)
