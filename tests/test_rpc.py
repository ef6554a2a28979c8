"""RPC facade tests: call dispatch, wire encoding per deployment, subscription topics."""

import pytest

from msgboard.config import SUBSCRIPTION_MODE_COLLAPSED, BoardConfig
from msgboard.exceptions import InvalidRequest, NotFound
from msgboard.rpc import MessageBoard


def test_end_to_end_send_update_delete(board):
    updates = board.subscribe("messageUpdated")

    sent = board.dispatch("mutation", "sendMessage", {"user": "1", "text": "hi"})
    assert sent["id"] == "1"
    assert sent["text"] == "hi"
    assert sent["user"] == {"id": "1", "name": "Saifullah"}
    assert sent["createdAt"].endswith("Z")

    updated = board.dispatch("mutation", "updateMessage", {"id": "1", "text": "hello"})
    assert updated["id"] == "1"
    assert updated["text"] == "hello"
    assert updated["createdAt"] == sent["createdAt"]
    assert board.encode_event(updates.get_nowait()) == updated

    assert board.dispatch("mutation", "deleteMessage", {"id": "1"}) == "1"
    assert board.dispatch("query", "messages") == []
    updates.close()


@pytest.mark.parametrize("arg", ["user", "author", "userId"])
def test_author_argument_names(board, arg):
    message = board.dispatch("mutation", "sendMessage", {arg: "2", "text": "x"})
    assert message["user"]["name"] == "MohammedAlith"


def test_numeric_id_argument_is_stringified(board):
    board.send_message("1", "a")
    assert board.dispatch("mutation", "deleteMessage", {"id": 1}) == "1"


def test_free_text_author_encoding():
    board = MessageBoard.from_config(BoardConfig(strict_author_ref=False, heartbeat_interval_sec=0))
    message = board.send_message("guest", "hi")
    assert message["author"] == "guest"
    assert "user" not in message
    assert board.messages() == [message]


def test_unknown_user_is_not_found(board):
    with pytest.raises(NotFound) as exc:
        board.dispatch("mutation", "sendMessage", {"userId": "9", "text": "x"})
    assert exc.value.message == "User not found"


def test_update_missing_message(board):
    with pytest.raises(NotFound) as exc:
        board.update_message("5", "x")
    assert exc.value.message == "Message not found"


@pytest.mark.parametrize(
    "kind, call, args",
    [
        ("query", "nope", {}),
        ("subscription", "messageSent", {}),
        ("mutation", "sendMessage", {"text": "missing author"}),
        ("mutation", "updateMessage", {"id": "1"}),
        ("mutation", "sendMessage", {"userId": "1", "text": ["not", "a", "string"]}),
    ],
)
def test_bad_calls(board, kind, call, args):
    with pytest.raises(InvalidRequest):
        board.dispatch(kind, call, args)


def test_split_mode_exposes_three_topics(board):
    assert board.topics == ("messageSent", "messageUpdated", "messageDeleted")
    for topic in board.topics:
        board.subscribe(topic).close()


def test_collapsed_mode_only_exposes_sent():
    board = MessageBoard.from_config(
        BoardConfig(subscription_mode=SUBSCRIPTION_MODE_COLLAPSED, heartbeat_interval_sec=0)
    )
    assert board.topics == ("messageSent",)
    with pytest.raises(InvalidRequest):
        board.subscribe("messageUpdated")
    with board.subscribe("messageSent") as listener:
        board.send_message("1", "hi")
        assert listener.get_nowait().message.text == "hi"


def test_unknown_topic(board):
    with pytest.raises(InvalidRequest):
        board.subscribe("messageExploded")
