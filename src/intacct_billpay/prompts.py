"""Interactive terminal prompts."""

from collections.abc import Callable, Sequence
from datetime import date

YES_ANSWERS = ("y", "yes")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class Prompter:
    """Asks the operator questions on the terminal.

    Input and output functions are injectable so runs can be scripted.
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._output = output_func

    def _read(self, prompt: str = "") -> str:
        return self._input(prompt).strip()

    def ask_text(self, question: str) -> str:
        self._output(question)
        return self._read()

    def ask_yes_no(self, question: str, default: bool) -> bool:
        """Yes/no question; an empty answer takes the default."""
        hint = "(Y/Enter for Yes, N for No)" if default else "(N/Enter for No, Y for Yes)"
        answer = self.ask_text(f"{question} {hint}").lower()
        if not answer:
            return default
        return answer in YES_ANSWERS

    def ask_int(self, question: str, default: int, minimum: int = 1) -> int:
        """Whole number; blank, non-numeric or too small answers take the default."""
        answer = self.ask_text(f"{question} (default {default}):")
        try:
            value = int(answer)
        except ValueError:
            return default
        return value if value >= minimum else default

    def ask_choice(self, question: str, options: Sequence[str]) -> str:
        """Pick one option by its 1-based number, asking again until valid."""
        if not options:
            raise ValueError("ask_choice needs at least one option")
        while True:
            self._output(question)
            for number, option in enumerate(options, start=1):
                self._output(f"{number}: {option}")
            answer = self._read("Enter your selection: ")
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return options[int(answer) - 1]
            self._output("Invalid selection. Please try again.")


def generate_filter_options(today: date, months: int = 12) -> list[str]:
    """Month filter-set labels (``"Oct 2026"``), newest first."""
    options = []
    year, month = today.year, today.month
    for _ in range(months):
        options.append(f"{MONTH_NAMES[month - 1]} {year}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return options
