import pytest

from pillcount import cli


def test_count_prints_result_and_timing(capsys):
    assert cli.main(["count", "10"]) == 0

    out_lines = capsys.readouterr().out.splitlines()
    assert out_lines[0] == "89"
    assert out_lines[1].startswith("Computed in ")
    assert "steps=1,2" in out_lines[1]


def test_count_with_custom_steps(capsys):
    assert cli.main(["count", "5", "--steps", "1,2,3"]) == 0
    assert capsys.readouterr().out.splitlines()[0] == "13"


def test_count_rejects_negative_total(capsys):
    assert cli.main(["count", "-3"]) == 1
    assert "Total must be zero or positive" in capsys.readouterr().err


@pytest.mark.parametrize("steps", ["a,b", "0,1", ""])
def test_invalid_steps_exit_with_usage_error(steps):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["count", "5", "--steps", steps])
    assert exc_info.value.code == 2


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])


def test_serve_runs_uvicorn(monkeypatch):
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    assert cli.main(["serve", "--port", "9000"]) == 0
    assert calls == [("pillcount.main:app", {"host": "0.0.0.0", "port": 9000})]
