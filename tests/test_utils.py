import pytest

from channel_transcriber.utils import format_duration, load_config, load_json, save_json


@pytest.mark.parametrize("seconds, text", [(0, "0:00"), (75, "1:15"), (3725, "1:02:05"), (42.9, "0:42")])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_load_config(tmp_path):
    path = tmp_path / "app.yaml"
    path.write_text("app:\n  pipeline:\n    request_delay: 6.0\n", encoding="utf-8")

    assert load_config(str(path)) == {"app": {"pipeline": {"request_delay": 6.0}}}


def test_load_config_empty_and_missing(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")

    assert load_config(str(empty)) == {}
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_json_round_trip_keeps_unicode(tmp_path):
    path = tmp_path / "sub" / "data.json"

    save_json({"text": "xin chào"}, str(path))

    assert "xin chào" in path.read_text(encoding="utf-8")
    assert load_json(str(path)) == {"text": "xin chào"}
    assert load_json(str(tmp_path / "none.json")) == {}
