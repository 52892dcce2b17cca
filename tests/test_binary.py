import pytest

from workerkit.gen.binary import format_binary, gen_binary


def test_format_pins_layout():
    text = format_binary("blob", bytes(range(9)))
    assert text == (
        "const unsigned char blob[9] = {\n"
        "0x00, 0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, \n"
        "0x08\n"
        "};\n"
        "const unsigned int kblob = 9;\n"
    )


def test_format_high_bytes_are_masked_hex():
    text = format_binary("x", b"\xff\x80")
    assert "0xff, 0x80" in text
    assert text.endswith("const unsigned int kx = 2;\n")


def test_format_counts_every_byte():
    data = bytes(range(40))
    text = format_binary("data", data)
    assert text.count("0x") == len(data)
    assert f"data[{len(data)}]" in text


@pytest.mark.parametrize("name, data", [("", b"a"), ("name", b"")])
def test_format_rejects_empty(name, data):
    with pytest.raises(ValueError):
        format_binary(name, data)


def test_gen_binary_writes_file(tmp_path):
    target = tmp_path / "nested" / "dir" / "out.h"
    gen_binary(target, "res", b"\x01\x02")
    assert target.read_text() == format_binary("res", b"\x01\x02")


def test_gen_binary_truncates(tmp_path):
    target = tmp_path / "out.h"
    gen_binary(target, "big", bytes(100))
    gen_binary(target, "small", b"\x05")
    assert target.read_text() == format_binary("small", b"\x05")


def test_gen_binary_rejects_empty_path():
    with pytest.raises(ValueError):
        gen_binary("", "name", b"a")