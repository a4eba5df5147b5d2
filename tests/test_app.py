from pathlib import Path

from streamlit.testing.v1 import AppTest

APP = Path(__file__).resolve().parents[1] / "app.py"


def _style_blocks(at):
    return [m for m in at.markdown if "<style>" in m.value]


def test_base_styles_are_emitted_on_every_run():
    at = AppTest.from_file(str(APP), default_timeout=30).run()
    assert not at.exception
    assert len(_style_blocks(at)) == 1

    at.run()
    assert not at.exception
    assert len(_style_blocks(at)) == 1
