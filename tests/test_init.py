from __future__ import annotations

import strudelbop


def test_public_api_is_exported() -> None:
    for name in strudelbop.__all__:
        assert hasattr(strudelbop, name), name


def test_logging_helper_is_not_reexported() -> None:
    assert not hasattr(strudelbop, "_configure_logging")
    assert strudelbop.__version__ == "0.1.0"
