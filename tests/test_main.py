import pytest

from sheet_insights import main as cli


@pytest.fixture
def served(monkeypatch):
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli, "create_app", lambda config: ("app", config))
    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    monkeypatch.delenv("PORT", raising=False)
    return calls


def test_defaults_from_configuration(served):
    assert cli.main([]) == 0
    assert served["host"] == "0.0.0.0"
    assert served["port"] == 5000
    assert served["log_config"] is None


def test_port_environment_variable(served, monkeypatch):
    monkeypatch.setenv("PORT", "7001")
    cli.main([])
    assert served["port"] == 7001


def test_command_line_wins(served, monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "7001")
    config = tmp_path / "config.yaml"
    config.write_text("server:\n  host: 127.0.0.1\n  port: 9000\n", encoding="utf-8")

    cli.main(["--config", str(config), "--port", "8123"])
    assert served["host"] == "127.0.0.1"
    assert served["port"] == 8123
    assert served["app"][1].server.port == 9000


def test_keyboard_interrupt_exits_130(monkeypatch):
    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "main", interrupted)
    with pytest.raises(SystemExit) as info:
        cli.run()
    assert info.value.code == 130
