from unittest.mock import patch

from telemetry_observer.apps import observer_cli


def test_cli_flags_become_overrides():
    args = observer_cli.parse_args([
        "--genesis-hash", "0xabc",
        "--telemetry-url", "wss://x.example/feed",
        "--output-path", "out.csv",
        "--log-level", "DEBUG",
    ])
    assert observer_cli.cli_overrides(args) == {
        "feed": {"genesis_hash": "0xabc", "telemetry_url": "wss://x.example/feed"},
        "storage": {"output_path": "out.csv"},
        "logging": {"level": "DEBUG"},
    }


def test_invalid_url_exits_nonzero():
    with patch.object(observer_cli, "main_loop") as loop:
        assert observer_cli.main(["--telemetry-url", "definitely not a url"]) == 1
    loop.assert_not_called()


def test_unusable_output_path_exits_nonzero(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    code = observer_cli.main([
        "--output-path", str(blocker / "authors.csv"),
        "--nodes-file", str(tmp_path / "nodes.json"),
        "--blocks-file", str(tmp_path / "blocks.json"),
    ])
    assert code == 1


def test_valid_run_starts_main_loop(tmp_path):
    async def fake_loop(settings):
        assert settings.feed.genesis_hash == "0xabc"

    with patch.object(observer_cli, "main_loop", fake_loop):
        code = observer_cli.main([
            "--genesis-hash", "0xabc",
            "--output-path", str(tmp_path / "a.csv"),
        ])
    assert code == 0


def test_settings_yaml_in_working_dir_is_read_by_default(tmp_path, monkeypatch):
    (tmp_path / "settings.yaml").write_text(
        "aggregation:\n  min_reports: 7\nstorage:\n  output_path: out.csv\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    seen = {}

    async def fake_loop(settings):
        seen["min_reports"] = settings.aggregation.min_reports

    with patch.object(observer_cli, "main_loop", fake_loop):
        assert observer_cli.main([]) == 0
    assert seen == {"min_reports": 7}


def test_missing_default_settings_falls_back_to_builtins(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert observer_cli.resolve_config_path(None) is None
    assert observer_cli.resolve_config_path("custom.yaml") == "custom.yaml"
