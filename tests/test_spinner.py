from __future__ import annotations

import io

from strudelbop.errors import MediaFetchError
from strudelbop.spinner import Spinner, render_error


def test_spinner_disabled_is_noop() -> None:
    with Spinner("Downloading sample", enabled=False) as spinner:
        spinner.update("Still downloading")
    spinner.stop()


def test_spinner_defaults_to_disabled_off_tty() -> None:
    stream = io.StringIO()
    with Spinner("Generating", stream=stream):
        pass

    assert stream.getvalue() == ""


def test_render_error_plain_stream(monkeypatch) -> None:
    monkeypatch.delenv("STRUDELBOP_DEBUG", raising=False)
    stream = io.StringIO()

    render_error("sample download", MediaFetchError("Download failed"), stream=stream)

    output = stream.getvalue()
    assert output.startswith("sample download failed: MediaFetchError: Download failed")
    assert "logs:" in output
