"""
Decision providers: the only place devsetup asks the user anything.
Units of work receive one of these instead of reading the terminal themselves.
"""
from typing import Iterable, List, Protocol, Sequence

import typer

from .ui import console, icon


class DecisionProvider(Protocol):
    def ask_yes_no(self, prompt: str, default: bool = True) -> bool:
        ...

    def ask_select(self, prompt: str, options: Sequence[str], default: int = 0) -> int:
        ...


class InteractiveDecisions:
    """Prompts on the terminal via typer."""

    def ask_yes_no(self, prompt: str, default: bool = True) -> bool:
        return typer.confirm(f"{icon('warn')} {prompt}", default=default)

    def ask_select(self, prompt: str, options: Sequence[str], default: int = 0) -> int:
        console.print(f"\n[bold]{prompt}[/]")
        for i, option in enumerate(options, start=1):
            console.print(f"  {i}) {option}")
        choice = typer.prompt(
            f"Enter selection (1-{len(options)})",
            default=default + 1,
            type=typer.IntRange(1, len(options)),
        )
        return choice - 1


class AutoDecisions:
    """--yes: accept every confirmation, take the default of every selection."""

    def ask_yes_no(self, prompt: str, default: bool = True) -> bool:
        return True

    def ask_select(self, prompt: str, options: Sequence[str], default: int = 0) -> int:
        return default


class ScriptedDecisions:
    """Replays canned answers in order; falls back to defaults when exhausted."""

    def __init__(self, answers: Iterable[object] = ()):
        self._answers: List[object] = list(answers)
        self.asked: List[str] = []

    def _next(self, prompt: str, fallback: object) -> object:
        self.asked.append(prompt)
        return self._answers.pop(0) if self._answers else fallback

    def ask_yes_no(self, prompt: str, default: bool = True) -> bool:
        return bool(self._next(prompt, default))

    def ask_select(self, prompt: str, options: Sequence[str], default: int = 0) -> int:
        answer = int(self._next(prompt, default))  # type: ignore[call-overload]
        if not 0 <= answer < len(options):
            raise ValueError(f"Scripted answer {answer} out of range for {prompt!r}")
        return answer
