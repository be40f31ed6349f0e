import json

import pytest


def test_cli_demo_text_output(capsys):
    from tts_cache import cli

    code = cli.main(["--items", "3", "--delay-ms", "10"])
    assert code == 0
    out = capsys.readouterr().out
    assert "CLI_OK" in out
    assert "request['Hello 2']" in out


def test_cli_json_payload(capsys):
    from tts_cache import cli

    code = cli.main(["--items", "4", "--delay-ms", "5", "--json"])
    assert code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[-1] == "CLI_OK"

    payload = json.loads(next(line for line in lines if line.startswith("{")))
    assert payload["ok"] is True
    assert payload["generate_calls"] == 4
    assert payload["result"]["text"] == "Hello 3"
    assert payload["stats"]["entry_count"] == 4
    assert payload["not_completed"] == []


def test_cli_fail_every(capsys):
    from tts_cache import cli

    code = cli.main(["--items", "4", "--delay-ms", "5", "--fail-every", "2", "--json"])
    assert code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    payload = json.loads(next(line for line in lines if line.startswith("{")))

    # Calls 2 and 4 fail: "Hello 1" and the requested "Hello 3"
    assert payload["error"] == "GENERATION_FAILED"
    assert payload["not_completed"] == ["Hello 1", "Hello 3"]


def test_cli_config_and_max_entries(tmp_path, capsys, monkeypatch):
    from tts_cache import cli

    for name in ("TTS_CACHE_TIMEOUT_MS", "TTS_CACHE_MAX_ENTRIES", "TTS_CACHE_MAX_SIZE_BYTES"):
        monkeypatch.delenv(name, raising=False)
    settings = tmp_path / "settings.yaml"
    # main() points TTS_CACHE_SETTINGS at --config; setenv restores it afterwards
    monkeypatch.setenv("TTS_CACHE_SETTINGS", str(settings))
    settings.write_text("cache:\n  max_entries: 50\ngeneration:\n  timeout_ms: 2000\n", encoding="utf-8")

    code = cli.main(["--config", str(settings), "--items", "5", "--delay-ms", "5", "--max-entries", "3", "--json"])
    assert code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    payload = json.loads(next(line for line in lines if line.startswith("{")))

    assert payload["stats"]["max_entries"] == 3
    assert payload["stats"]["entry_count"] == 3
    assert payload["result"]["text"] == "Hello 4"


def test_cli_rejects_zero_items():
    from tts_cache import cli

    with pytest.raises(SystemExit):
        cli.main(["--items", "0"])


@pytest.mark.slow
def test_cli_demo_over_capacity(capsys):
    """105 items against the default 100-entry cache."""
    from tts_cache import cli

    code = cli.main(["--items", "105", "--delay-ms", "200", "--json"])
    assert code == 0
    lines = capsys.readouterr().out.strip().splitlines()
    payload = json.loads(next(line for line in lines if line.startswith("{")))

    assert payload["generate_calls"] == 105
    assert payload["stats"]["entry_count"] == 100
    assert payload["stats"]["evictions"] == 5
