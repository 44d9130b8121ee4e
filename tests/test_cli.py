from pathlib import Path

import pytest

from clouddev import cli
from clouddev.commands.completion import bash_completion_script
from clouddev.utils.errors import BailError, CloudDevError
from clouddev.version import VERSION


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("PULUMI_BACKEND_URL", raising=False)
    monkeypatch.delenv("PULUMI_HOME", raising=False)


def test_version(capsys) -> None:
    cli.main(["version"])
    assert capsys.readouterr().out == f"version {VERSION}\n"


def test_completion(capsys) -> None:
    cli.main(["completion"])
    script = capsys.readouterr().out
    assert "complete -F _clouddev clouddev" in script
    assert "init|up|version|completion" in script
    assert "--ssh-key" in script


def test_completion_script_lists_subcommand_flags() -> None:
    script = bash_completion_script(cli.build_parser())
    init_case = next(line for line in script.splitlines() if line.strip().startswith("init)"))
    assert "--stack-name" in init_case
    assert "--runtime" in init_case
    assert "--ssh-key" not in init_case


def test_no_command_prints_help(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 1
    assert "usage:" in capsys.readouterr().out


def test_up_defaults() -> None:
    args = cli.build_parser().parse_args(["up", "-s", "dev", "--ssh-key", "1", "--ssh-key", "2"])
    assert args.yes is True
    assert args.skip_preview is False
    assert args.ssh_key == ["1", "2"]


def test_up_without_login_is_unsupported(tmp_path: Path, capsys) -> None:
    (tmp_path / "clouddev.yaml").write_text(
        "pulumi:\n  stack: dev\nname: web\nimage: ubuntu-22-04-x64\nregion: nyc3\nsize: s-1vcpu-1gb\n"
    )
    with pytest.raises(SystemExit) as exc:
        cli.main(["up"])
    assert exc.value.code == 1
    assert "non-filestate backend unsupported" in capsys.readouterr().err


def test_up_missing_droplet_config(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["up", "-s", "dev"])
    assert exc.value.code == 1
    assert "missing droplet configuration" in capsys.readouterr().err


def test_bail_exits_silently(monkeypatch, capsys) -> None:
    def bail(args, context, config):
        raise BailError()

    monkeypatch.setattr(cli, "up_command", bail)
    with pytest.raises(SystemExit) as exc:
        cli.main(["up"])
    assert exc.value.code == 1
    assert capsys.readouterr().err == ""


def test_errors_are_reported(monkeypatch, capsys) -> None:
    def fail(args, context, config):
        raise CloudDevError("could not set current stack: disk full")

    monkeypatch.setattr(cli, "init_command", fail)
    with pytest.raises(SystemExit) as exc:
        cli.main(["init", "-s", "dev"])
    assert exc.value.code == 1
    assert "could not set current stack: disk full" in capsys.readouterr().err


def test_work_dir_is_global(tmp_path: Path, monkeypatch) -> None:
    seen = []
    monkeypatch.setattr(cli, "up_command", lambda args, context, config: seen.append(context.work_dir))

    cli.main(["-w", "project", "up", "-s", "dev"])

    assert seen == [tmp_path / "project"]


def test_work_dir_after_subcommand_is_rejected() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.build_parser().parse_args(["up", "-w", "project"])
    assert exc.value.code == 2
