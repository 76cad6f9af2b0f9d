import pytest

from aurbuild.modules.runner import CommandError, CommandRunner, CommandTimeout


def test_run_captures_output():
    result = CommandRunner().run(["sh", "-c", "echo hello; echo oops >&2"])
    assert result.ok()
    assert result.stdout == "hello\n"
    assert result.stderr == "oops\n"


def test_string_commands_are_split():
    assert CommandRunner().run("echo 'a b' c").stdout == "a b c\n"


def test_input_and_extra_env():
    result = CommandRunner().run(["sh", "-c", 'cat; echo "$AURBUILD_TEST"'],
                                 input="from stdin\n", extra_env={"AURBUILD_TEST": "set"})
    assert result.stdout == "from stdin\nset\n"


def test_explicit_env_replaces_environment(monkeypatch):
    monkeypatch.setenv("AURBUILD_LEAK", "1")
    result = CommandRunner().run(["/bin/sh", "-c", 'echo "[$AURBUILD_LEAK]"'], env={"PATH": "/usr/bin:/bin"})
    assert result.stdout == "[]\n"


def test_nonzero_exit():
    runner = CommandRunner()
    assert runner.run(["sh", "-c", "exit 3"], check=False).returncode == 3
    with pytest.raises(CommandError) as exc:
        runner.run(["sh", "-c", "exit 3"])
    assert exc.value.result.returncode == 3


def test_missing_binary():
    with pytest.raises(CommandError):
        CommandRunner().run(["/nonexistent/aurbuild-binary"])


def test_timeout():
    with pytest.raises(CommandTimeout):
        CommandRunner().run(["sleep", "5"], timeout=0.2)


def test_dry_run_skips_mutating_commands(tmp_path):
    marker = tmp_path / "marker"
    runner = CommandRunner(dry_run=True)
    assert runner.run(["touch", str(marker)]).ok()
    assert not marker.exists()
    assert runner.run(["echo", "query"], mutating=False).stdout == "query\n"
