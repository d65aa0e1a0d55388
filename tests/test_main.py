"""Tests for the terminal front end helpers."""

from mavens.agent import Orchestrator
from mavens.main import handle_command, render
from mavens.models import Response, Status


def test_render_truncates_and_flags_failures():
    ok = Response(content="x" * 50, status=Status.SUCCESS)
    failed = Response(content="boom", status=Status.ERROR)

    assert render(ok, 10) == "x" * 9 + "…"
    assert render(failed, 100) == "boom\n[error]"


def test_slash_commands(capsys, fake_llm, context, learning):
    orchestrator = Orchestrator(llm=fake_llm, context=context, learning=learning)

    assert handle_command(orchestrator, "s1", "/learning") is True
    assert "No patterns learned yet" in capsys.readouterr().out

    assert handle_command(orchestrator, "s1", "/context") is True
    assert '"turns_in_window": 0' in capsys.readouterr().out

    assert handle_command(orchestrator, "s1", "/clear") is True
    assert handle_command(orchestrator, "s1", "/help") is True
    assert "/exit" in capsys.readouterr().out

    assert handle_command(orchestrator, "s1", "/exit") is False
