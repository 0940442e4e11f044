import pytest

from anon_relay.callback_data import (
    ActionSend,
    SendTo,
    decode_callback_data,
    encode_callback_data,
)


def test_action_send_token():
    assert encode_callback_data(ActionSend()) == "select"
    assert decode_callback_data("select") == ActionSend()


@pytest.mark.parametrize("chat_id", [0, 42, -1001234567890])
def test_send_to_round_trip(chat_id):
    token = encode_callback_data(SendTo(chat_id))
    assert token == f"send_to:{chat_id}"
    assert decode_callback_data(token) == SendTo(chat_id)


def test_tokens_fit_telegram_limit():
    token = encode_callback_data(SendTo(-(2**63)))
    assert len(token.encode()) <= 64


@pytest.mark.parametrize(
    "raw",
    [None, "", "Select", "send_to:", "send_to:abc", "send_to:1.5", "send_to: 12", "send_to:--1", "other"],
)
def test_unrecognised_tokens_decode_to_none(raw):
    assert decode_callback_data(raw) is None


def test_encode_rejects_unknown_values():
    with pytest.raises(TypeError):
        encode_callback_data("select")
