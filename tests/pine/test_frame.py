"""Tests the frame layout."""

import pytest

from woody.pine.catalog import lookup
from woody.pine.frame import Field, Frame, new_answer_frame, new_request_frame


def test_field() -> None:
    """Test the field value conversion and its limits."""
    field = Field("address", 5, 4)

    assert field.value == 0
    assert field.end == 9

    field.value = b"\x9c\x45\x35\x00"
    assert field.value == 0x35459C

    field.value = bytearray(b"\xff\xff\xff\xff")
    assert field.value == 0xFFFFFFFF

    with pytest.raises(ValueError):
        field.value = 0x100000000

    with pytest.raises(ValueError):
        field.value = -1

    with pytest.raises(ValueError):
        field.value = b"\x00\x00"

    with pytest.raises(TypeError):
        field.value = "1"  # type: ignore

    with pytest.raises(ValueError):
        Field("slot", -1, 1)


def test_frame() -> None:
    """Fields are appended without gaps, and converted in little endian order."""
    frame = Frame(("total_length", 4), ("opcode", 1))
    frame.add("slot", 1)

    assert [(field.name, field.offset) for field in frame] == [("total_length", 0), ("opcode", 4), ("slot", 5)]
    assert frame.size == 6

    frame["total_length"] = frame.size
    frame["opcode"] = 9
    frame["slot"] = 3

    assert "slot" in frame
    assert "address" not in frame
    assert frame.as_bytes() == bytes([6, 0, 0, 0, 9, 3])

    frame.parse(bytes([6, 0, 0, 0, 10, 7]))
    assert frame["opcode"].value == 10
    assert frame["slot"].value == 7

    with pytest.raises(ValueError):
        frame.parse(bytes(5))


def test_duplicate_and_missing_fields() -> None:
    """Field names are unique, and only existing fields can be accessed."""
    frame = Frame(("total_length", 4))

    with pytest.raises(KeyError):
        frame.add("total_length", 4)

    with pytest.raises(KeyError):
        frame["opcode"] = 1


def test_request_frames() -> None:
    """Request frames contain the fields of the operation layout."""
    write = new_request_frame(lookup("write16"))
    assert [field.name for field in write] == ["total_length", "opcode", "address", "data"]
    assert write["total_length"].value == 11
    assert write["opcode"].value == 5

    version = new_request_frame(lookup("version"))
    assert version.as_bytes() == bytes([5, 0, 0, 0, 8])


def test_answer_frames() -> None:
    """Answer frames depend on the operation and the total length."""
    assert [field.name for field in new_answer_frame(lookup("read32"), 5)] == ["total_length", "result_code"]
    assert "value" in new_answer_frame(lookup("read32"), 9)
    assert new_answer_frame(lookup("read32"), 9)["value"].size == 4
    assert "status" in new_answer_frame(lookup("status"), 9)
    assert "string_length" in new_answer_frame(lookup("title"), 12)
    assert new_answer_frame(lookup("write8"), 5).size == 5
