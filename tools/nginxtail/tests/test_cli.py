"""Tests for argument handling, configuration and log file discovery."""

import sys
from pathlib import Path

import pytest

from nginxtail import cli
from nginxtail.errors import NoLogFilesError
from nginxtail.utils.paths import discover_log_files, find_access_logs, log_root


def test_normalize_filters():
    assert cli.normalize_filters(["5xx", "404", "5", "4xx"]) == ["4", "404", "5"]
    assert cli.normalize_filters([]) == []


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.paths == []
    assert args.max_width is None
    assert args.target_height is None
    assert args.max_runtime is None
    assert not args.combine
    assert not args.merge
    assert args.filters == []


def test_parser_options():
    args = cli.build_parser().parse_args(
        ["--max-width", "0", "--merge", "--filter", "4xx", "--filter", "500", "a.log", "logs/"]
    )
    assert args.max_width == 0
    assert args.merge
    assert args.filters == ["4xx", "500"]
    assert args.paths == [Path("a.log"), Path("logs/")]


def test_load_dotenv(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("# comment\nNGINX_TAIL_LOG_ROOT=/srv/logs\nNGINX_TAIL_LOG_LEVEL=DEBUG\nbogus\n")
    # setenv first so teardown restores the original value
    monkeypatch.setenv("NGINX_TAIL_LOG_ROOT", "unset")
    monkeypatch.delenv("NGINX_TAIL_LOG_ROOT")
    monkeypatch.setenv("NGINX_TAIL_LOG_LEVEL", "INFO")

    cli.load_dotenv(env_file)

    assert log_root() == Path("/srv/logs")
    # The real environment wins over .env
    assert cli.os.environ["NGINX_TAIL_LOG_LEVEL"] == "INFO"


def test_find_access_logs(tmp_path):
    (tmp_path / "site1").mkdir()
    (tmp_path / "site2" / "nested").mkdir(parents=True)
    (tmp_path / "site1" / "access.log").write_text("")
    (tmp_path / "site1" / "access.log.1").write_text("")
    (tmp_path / "site1" / "error.log").write_text("")
    (tmp_path / "site2" / "nested" / "access.log").write_text("")

    found = sorted(find_access_logs(tmp_path))

    assert found == [
        tmp_path / "site1" / "access.log",
        tmp_path / "site2" / "nested" / "access.log",
    ]


def test_discover_mixes_files_and_dirs(tmp_path, caplog):
    (tmp_path / "logs").mkdir()
    (tmp_path / "logs" / "access.log").write_text("")
    custom = tmp_path / "custom.log"
    custom.write_text("")

    found = discover_log_files([custom, tmp_path / "logs", custom, tmp_path / "nope.log"])

    assert found == [custom, tmp_path / "logs" / "access.log"]
    assert "is not a file" in caplog.text


def test_discover_uses_log_root(tmp_path, monkeypatch):
    (tmp_path / "access.log").write_text("")
    monkeypatch.setenv("NGINX_TAIL_LOG_ROOT", str(tmp_path))

    assert discover_log_files([]) == [tmp_path / "access.log"]


def test_discover_nothing_found(tmp_path):
    with pytest.raises(NoLogFilesError):
        discover_log_files([tmp_path])


def test_main_exits_non_zero_without_logs(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["nginx-tail", str(tmp_path)])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1
    assert "No useable log files found" in capsys.readouterr().err


def test_main_streams_until_max_runtime(tmp_path, monkeypatch, capsys):
    log_file = tmp_path / "access.log"
    log_file.write_text("")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        sys, "argv", ["nginx-tail", "--max-runtime", "0.2", str(log_file)]
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    # capsys replaces stdout with a non-terminal, so streaming mode is used
    assert excinfo.value.code == 0
