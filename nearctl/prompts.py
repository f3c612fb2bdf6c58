"""Terminal prompts used when a value was not supplied on the command line."""

from __future__ import annotations

from typing import Protocol, Sequence


class InputUnavailable(RuntimeError):
    """Raised when a value must be asked for but the run is non-interactive."""


class Prompter(Protocol):
    def prompt(self, message: str, default: str | None = None) -> str:
        ...

    def select(self, message: str, options: Sequence[str], default: int = 0) -> int:
        ...

    def notify(self, message: str) -> None:
        ...


class ConsolePrompter:
    """Prompt on stdin/stdout."""

    def _read(self, text: str) -> str:
        try:
            return input(text).strip()
        except EOFError as exc:
            raise InputUnavailable(f"input closed while waiting for: {text.rstrip(': ')}") from exc

    def prompt(self, message: str, default: str | None = None) -> str:
        suffix = f" [{default}]" if default is not None else ""
        while True:
            raw = self._read(f"{message}{suffix}: ")
            if raw:
                return raw
            if default is not None:
                return default
            print("Please enter a value or provide a default.")

    def select(self, message: str, options: Sequence[str], default: int = 0) -> int:
        if not options:
            raise ValueError("select() needs at least one option")
        print()
        print(message)
        for index, label in enumerate(options, start=1):
            print(f"  [{index}] {label}")
        while True:
            raw = self._read(f"Select an option [{default + 1}]: ")
            if not raw:
                return default
            try:
                choice = int(raw)
            except ValueError:
                choice = 0
            if 1 <= choice <= len(options):
                return choice - 1
            print("Invalid selection, please try again.")

    def notify(self, message: str) -> None:
        print(message)


class NonInteractivePrompter:
    """Refuse to prompt; used for unattended runs where every value is a flag."""

    def prompt(self, message: str, default: str | None = None) -> str:
        raise InputUnavailable(f"input required but running non-interactively: {message}")

    def select(self, message: str, options: Sequence[str], default: int = 0) -> int:
        choices = ", ".join(options)
        raise InputUnavailable(
            f"a choice is required but running non-interactively: {message} ({choices})"
        )

    def notify(self, message: str) -> None:
        print(message)
