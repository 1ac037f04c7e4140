import pytest
import yaml

from lockin.config import RunConfig, apply_overrides, build_config, dump_config, load_config


def test_empty_config_uses_client_defaults():
    cfg = build_config({}, env={})

    assert cfg.lockin.host == "169.254.11.17"
    assert cfg.lockin.port == 50000
    assert cfg.lockin.command == "X."
    assert cfg.lockin.connect_timeout_s is None
    assert cfg.trace.samples == 100
    assert cfg.output.local_runs_dir == "runs"


def test_yaml_file_is_loaded(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(
        "lockin:\n"
        "  host: 10.0.0.5\n"
        "  port: 50001\n"
        "  command: 'Y.'\n"
        "  connect_timeout_s: 2\n"
        "trace:\n"
        "  samples: 7\n"
        "  interval_s: 0\n"
    )

    cfg = load_config(path, env={})

    assert cfg.lockin.host == "10.0.0.5"
    assert cfg.lockin.port == 50001
    assert cfg.lockin.command == "Y."
    assert cfg.lockin.connect_timeout_s == 2.0
    assert cfg.trace.samples == 7
    assert cfg.trace.interval_s == 0.0


def test_environment_overrides_file():
    cfg = build_config({"lockin": {"host": "10.0.0.5", "port": 1}}, env={"LOCKIN_HOST": "127.0.0.1", "LOCKIN_PORT": "6000"})

    assert cfg.lockin.host == "127.0.0.1"
    assert cfg.lockin.port == 6000


def test_cli_overrides_win():
    cfg = build_config({}, env={"LOCKIN_HOST": "127.0.0.1"})

    apply_overrides(cfg, host="192.168.1.20", port=50002, command="MAG.")

    assert (cfg.lockin.host, cfg.lockin.port, cfg.lockin.command) == ("192.168.1.20", 50002, "MAG.")


@pytest.mark.parametrize(
    "raw",
    [
        {"lockin": {"port": 0}},
        {"lockin": {"port": 70000}},
        {"lockin": {"read_timeout_s": -1}},
        {"lockin": {"connect_timeout_s": 0}},
        {"trace": {"samples": 0}},
        {"trace": {"interval_s": -0.5}},
        {"lockin": "not a mapping"},
        {"lockin": {"port": "fifty"}},
        {"lockin": {"port": [50000]}},
        {"lockin": {"read_timeout_s": "soon"}},
        {"lockin": {"command": "\u00b5."}},
        {"lockin": {"command": ""}},
        {"trace": {"samples": "many"}},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_values_are_rejected(raw):
    with pytest.raises(ValueError):
        build_config(raw, env={})


def test_dump_config_round_trips_through_yaml(tmp_path):
    cfg = build_config({"trace": {"sample_name": "chip 3"}}, env={})
    path = tmp_path / "config.yaml"

    dump_config(cfg, path)
    raw = yaml.safe_load(path.read_text())

    assert raw["trace"]["sample_name"] == "chip 3"
    assert build_config(raw, env={}) == cfg
    assert isinstance(cfg, RunConfig)


def test_null_values_fall_back_to_defaults(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text(
        "lockin:\n"
        "  host:\n"
        "  port:\n"
        "  command: null\n"
        "  read_timeout_s:\n"
        "trace:\n"
        "  samples:\n"
        "  sample_name:\n"
        "output:\n"
        "  local_runs_dir:\n"
    )

    cfg = load_config(path, env={})

    assert cfg == build_config({}, env={})
    assert cfg.lockin.host == "169.254.11.17"
    assert cfg.lockin.port == 50000


def test_non_ascii_command_override_is_rejected():
    cfg = build_config({}, env={})

    with pytest.raises(ValueError):
        apply_overrides(cfg, command="\u00b5.")
