import os

import pytest

from ffe_crypto import KEY_PAIR_SUFFIX, PUBLIC_KEY_SUFFIX, KeyManager


class KeyFiles:
    def __init__(self, folder, key_size):
        self.folder = folder
        self.key_size = key_size
        self.public = os.path.join(folder, PUBLIC_KEY_SUFFIX)
        self.pair = os.path.join(folder, KEY_PAIR_SUFFIX)


def _generate(tmp_path_factory, name, key_size):
    folder = str(tmp_path_factory.mktemp(name))
    KeyManager().generate_key_pair(folder, key_size)
    return KeyFiles(folder, key_size)


@pytest.fixture(scope="session")
def keys_512(tmp_path_factory):
    return _generate(tmp_path_factory, "keys_512", 512)


@pytest.fixture(scope="session")
def keys_1024(tmp_path_factory):
    return _generate(tmp_path_factory, "keys_1024", 1024)


@pytest.fixture
def plain_file(tmp_path):
    def _make(data, name="secret.txt"):
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return _make


@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture(scope="session")
def other_keys_512(tmp_path_factory):
    return _generate(tmp_path_factory, "other_keys_512", 512)


@pytest.fixture(scope="session")
def other_keys_1024(tmp_path_factory):
    return _generate(tmp_path_factory, "other_keys_1024", 1024)
