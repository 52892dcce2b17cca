import secrets

import pytest

from workerkit.gen.container_id import ALPHABET, ContainerIdGenerator, random_string


def _fake_bytes(monkeypatch, chunks):
    it = iter(chunks)
    monkeypatch.setattr(secrets, "token_bytes", lambda n: next(it))


def test_random_string_length_and_alphabet():
    value = random_string(200)
    assert len(value) == 200
    assert set(value) <= set(ALPHABET)


def test_random_string_maps_last_symbols(monkeypatch):
    _fake_bytes(monkeypatch, [bytes([62, 63, 126, 127, 0])])
    assert random_string(5) == "szszA"


def test_random_string_rejects_negative():
    with pytest.raises(ValueError):
        random_string(-1)


def test_id_lengths():
    gen = ContainerIdGenerator()
    assert len(gen.generate_unique_id()) == 12
    assert len(gen.generate_unique_did()) == 48


def test_ids_are_unique():
    gen = ContainerIdGenerator()
    ids = [gen.generate_unique_id() for _ in range(500)]
    assert len(set(ids)) == len(ids)


def test_generation_skips_known_ids(monkeypatch):
    _fake_bytes(monkeypatch, [bytes(12), bytes([1] * 12)])
    gen = ContainerIdGenerator(known_ids=["A" * 12])
    assert gen.generate_unique_id() == "B" * 12


def test_remove_id():
    gen = ContainerIdGenerator()
    new_id = gen.generate_unique_id()
    assert gen.remove_id(new_id) is True
    assert gen.remove_id(new_id) is False


def test_remove_did_uses_known_dids():
    gen = ContainerIdGenerator(known_ids=[], known_dids=["dir-one"])
    assert gen.remove_did("dir-one") is True
    assert gen.remove_did("dir-one") is False


def test_uids_unique_and_in_range():
    gen = ContainerIdGenerator()
    uids = [gen.generate_unique_uid() for _ in range(300)]
    assert len(set(uids)) == len(uids)
    assert all(0 <= uid < 2**32 for uid in uids)


def test_uid_retries_on_collision(monkeypatch):
    values = iter([7, 7, 9])
    monkeypatch.setattr(secrets, "randbits", lambda k: next(values))
    gen = ContainerIdGenerator()
    assert gen.generate_unique_uid() == 7
    assert gen.generate_unique_uid() == 9


def test_random_unique_name_avoids_names(monkeypatch):
    _fake_bytes(monkeypatch, [bytes(10), bytes([2] * 10)])
    gen = ContainerIdGenerator()
    names = {"A" * 10}
    assert gen.random_unique_name(names) == "C" * 10
    assert names == {"A" * 10}