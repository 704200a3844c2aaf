import pytest

from utils import battle_display_name, decode_cursor, encode_cursor, hash_token, sanitize_json, validate_key
from utils.validation import encode_json_limited, is_valid_slug


def test_cursor_round_trip_and_rejection():
    token = encode_cursor("rid", 42)
    assert "=" not in token
    assert decode_cursor(token, "rid") == 42

    with pytest.raises(ValueError):
        decode_cursor(token, "bid")
    with pytest.raises(ValueError):
        decode_cursor("garbage!", "rid")
    with pytest.raises(ValueError):
        decode_cursor(encode_cursor("rid", -1), "rid")


@pytest.mark.parametrize("key", ["scores", "levels/1", "player_save.v2", "niveau-é", "関卡"])
def test_valid_keys(key):
    assert validate_key(key) == key


@pytest.mark.parametrize("key", ["", "   ", "a b", "owner:key", "x" * 201, "a?b"])
def test_invalid_keys(key):
    with pytest.raises(ValueError):
        validate_key(key)


def test_sanitize_drops_operator_keys_and_limits_depth():
    assert sanitize_json({"a": [{"$set": 1, "b": None}], "c..d": 2}) == {"a": [{"b": None}]}

    deep = {}
    node = deep
    for _ in range(12):
        node["n"] = {}
        node = node["n"]
    with pytest.raises(ValueError):
        sanitize_json(deep)
    with pytest.raises(ValueError):
        sanitize_json({"when": object()})


def test_encode_json_limited():
    assert encode_json_limited({"a": 1}, 10) == '{"a":1}'
    with pytest.raises(ValueError):
        encode_json_limited({"a": "é" * 10}, 15)


def test_battle_display_name_is_deterministic():
    name = battle_display_name("0123abcdef456789")
    assert name == battle_display_name("0123abcdef456789")
    adjective, noun, number = name.split("-")
    assert adjective and noun
    assert 0 <= int(number) < 100
    assert battle_display_name("not-hex-at-all").count("-") == 2


def test_hash_token_is_stable_sha256():
    assert hash_token("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert hash_token("abc") != hash_token("abd")


def test_game_slugs():
    assert is_valid_slug("birdwars")
    assert is_valid_slug("bird-wars-2")
    assert not is_valid_slug("-bird")
    assert not is_valid_slug("Bird")
