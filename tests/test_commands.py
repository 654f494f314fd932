"""Tests for command builders."""

import pytest

from l8_smartlight.errors import ValidationError
from l8_smartlight.models.color import Color
from l8_smartlight.protocol.commands import (
    Command,
    build_clear_matrix,
    build_play_animation,
    build_set_led,
    build_set_matrix,
    build_set_orientation,
    build_set_scrolling_text,
    build_set_super_led,
    build_store_animation,
    duration_to_ticks,
    encode_matrix,
)
from l8_smartlight.protocol.framing import parse_frame

RED = Color(15, 0, 0)


def test_command_enum_values():
    """Values the device answers with."""
    assert Command.L8_ACC_RESPONSE == 0x4D
    assert Command.L8_SET_AUTOROTATE == 0x6A


def test_build_set_led():
    """LED_SET parameters are x, y and the BGR color."""
    parsed = parse_frame(build_set_led(3, 5, Color(1, 2, 3)))
    assert parsed.command == Command.L8_LED_SET
    assert parsed.parameters == bytes([3, 5, 3, 2, 1])


@pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (8, 0), (0, 8), (10, 10)])
def test_set_led_bounds(x, y):
    with pytest.raises(ValidationError):
        build_set_led(x, y, RED)


def test_set_led_accepts_tuples_and_mappings():
    assert build_set_led(0, 0, (15, 0, 0)) == build_set_led(0, 0, RED)
    assert build_set_led(0, 0, {"r": 15, "g": 0, "b": 0}) == build_set_led(0, 0, RED)


@pytest.mark.parametrize("color", [(16, 0, 0), (0, -1, 0), (0, 0, 99), (1, 2)])
def test_invalid_colors(color):
    with pytest.raises(ValidationError):
        build_set_super_led(color)


def test_red_matrix_encoding():
    """Red pixels encode as blue=0 and (green << 4) | red = 0x0F."""
    parameters = parse_frame(build_set_matrix([RED] * 64)).parameters
    assert len(parameters) == 128
    assert all(b == 0x00 for b in parameters[0::2])
    assert all(b == 0x0F for b in parameters[1::2])


def test_matrix_packs_green_in_high_nibble():
    encoded = encode_matrix([Color(1, 2, 3)] + [Color()] * 63)
    assert encoded[:2] == bytes([3, 0x21])


@pytest.mark.parametrize("size", [0, 63, 65])
def test_matrix_wrong_length(size):
    with pytest.raises(ValidationError):
        build_set_matrix([RED] * size)


def test_clear_matrix_sends_zero_byte():
    parsed = parse_frame(build_clear_matrix())
    assert parsed.command == Command.L8_MATRIX_OFF
    assert parsed.parameters == b"\x00"


def test_super_led_is_bgr():
    parsed = parse_frame(build_set_super_led(Color(1, 2, 3)))
    assert parsed.parameters == bytes([3, 2, 1])


def test_scrolling_text_parameters():
    parsed = parse_frame(build_set_scrolling_text("Hi", Color(1, 2, 3), "slow", True))
    assert parsed.command == Command.L8_SET_TEXT
    assert parsed.parameters == bytes([1, 3, 1, 2, 3]) + b"Hi"


@pytest.mark.parametrize("speed, code", [("fast", 0), ("medium", 2), ("slow", 3)])
def test_scrolling_speed_codes(speed, code):
    parsed = parse_frame(build_set_scrolling_text("x", RED, speed, False))
    assert parsed.parameters[:2] == bytes([0, code])


def test_scrolling_text_invalid_speed():
    with pytest.raises(ValidationError):
        build_set_scrolling_text("x", RED, "warp", True)


def test_scrolling_text_must_be_ascii():
    with pytest.raises(ValidationError):
        build_set_scrolling_text("grüße", RED, "fast", True)


@pytest.mark.parametrize(
    "orientation, code", [("up", 1), ("down", 2), ("left", 5), ("right", 6)]
)
def test_orientation_codes(orientation, code):
    parsed = parse_frame(build_set_orientation(orientation))
    assert parsed.command == Command.L8_SET_ORIENTATION
    assert parsed.parameters == bytes([code])


def test_duration_rounding():
    assert duration_to_ticks(100) == 1
    assert duration_to_ticks(149) == 1
    assert duration_to_ticks(0) == 0
    with pytest.raises(ValidationError):
        duration_to_ticks(25600)


@pytest.mark.parametrize(
    "duration, ticks", [(50, 1), (150, 2), (250, 3), (350, 4), (25549, 255)]
)
def test_duration_halves_round_up(duration, ticks):
    """Half ticks round up, so a 50 ms step is never dropped to zero."""
    assert duration_to_ticks(duration) == ticks


def test_store_animation_rounds_halves_up():
    parsed = parse_frame(build_store_animation([1, 2, 3, 4], [50, 150, 250, 350]))
    assert parsed.parameters == bytes([4, 1, 1, 2, 2, 3, 3, 4, 4])


def test_store_animation_parameters():
    parsed = parse_frame(build_store_animation([4, 9], [100, 340]))
    assert parsed.command == Command.L8_STORE_ANIM
    assert parsed.parameters == bytes([2, 4, 1, 9, 3])


def test_store_animation_length_mismatch():
    with pytest.raises(ValidationError):
        build_store_animation([1, 2], [100])


def test_store_animation_empty():
    with pytest.raises(ValidationError):
        build_store_animation([], [])


def test_play_animation():
    parsed = parse_frame(build_play_animation(3, True))
    assert parsed.parameters == bytes([3, 1])
