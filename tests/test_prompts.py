import io

import pytest

from nearctl.prompts import ConsolePrompter, InputUnavailable, NonInteractivePrompter


def _feed(monkeypatch, answers):
    replies = iter(answers)
    asked = []

    def fake_input(prompt):
        asked.append(prompt)
        return next(replies)

    monkeypatch.setattr("builtins.input", fake_input)
    return asked


def test_console_prompt_uses_default_on_blank_input(monkeypatch):
    asked = _feed(monkeypatch, [""])

    assert ConsolePrompter().prompt("Amount", default="10 NEAR") == "10 NEAR"
    assert asked == ["Amount [10 NEAR]: "]


def test_console_prompt_insists_without_default(monkeypatch, capsys):
    _feed(monkeypatch, ["", "  alice.testnet  "])

    assert ConsolePrompter().prompt("Account") == "alice.testnet"
    assert "Please enter a value" in capsys.readouterr().out


def test_console_select_reasks_on_invalid_choice(monkeypatch, capsys):
    _feed(monkeypatch, ["7", "x", "2"])

    assert ConsolePrompter().select("Pick", ["send", "display"]) == 1
    out = capsys.readouterr().out
    assert "[1] send" in out
    assert out.count("Invalid selection") == 2


def test_console_select_blank_takes_default(monkeypatch):
    _feed(monkeypatch, [""])

    assert ConsolePrompter().select("Pick", ["a", "b", "c"], default=2) == 2


def test_non_interactive_prompter_refuses_input_but_prints(capsys):
    prompter = NonInteractivePrompter()

    with pytest.raises(InputUnavailable) as excinfo:
        prompter.prompt("What is the sender account ID?")
    with pytest.raises(InputUnavailable):
        prompter.select("Mode", ["online", "offline"])
    prompter.notify("Account <x> doesn't exist")

    assert "What is the sender account ID?" in str(excinfo.value)
    assert "Account <x> doesn't exist" in capsys.readouterr().out


def test_console_prompts_report_closed_stdin(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    prompter = ConsolePrompter()

    with pytest.raises(InputUnavailable, match="Account"):
        prompter.prompt("Account")
    with pytest.raises(InputUnavailable, match="Select an option"):
        prompter.select("Pick", ["send", "display"])
