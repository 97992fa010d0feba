"""Operator console: output stream for reports and the confirmation prompt."""

import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

from upgrade_gate.errors import ConfirmationError

CONFIRM_PROMPT = "Do you want to continue with the upgrade? [y/N]: "
AFFIRMATIVE_ANSWERS = ("y", "yes")


def is_affirmative(answer: str) -> bool:
    return answer.strip().lower() in AFFIRMATIVE_ANSWERS


class Console:
    """Input and output streams used to talk to the operator.

    Streams default to the process stdin/stdout at call time, so a Console
    built before pytest captures output still writes to the captured stream.
    """

    def __init__(self, out: Optional[TextIO] = None, inp: Optional[TextIO] = None):
        self._out = out
        self._inp = inp

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def inp(self) -> TextIO:
        return self._inp if self._inp is not None else sys.stdin

    def write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def ask_confirmation(self, prompt: str = CONFIRM_PROMPT) -> bool:
        """Prompt for a yes/no answer; True only for "y" or "yes".

        Raises:
            ConfirmationError: if the prompt cannot be written or input
                cannot be read (including a closed input stream).
        """
        try:
            self.write(prompt)
            line = self.inp.readline()
        except OSError as e:
            raise ConfirmationError(f"failed to read confirmation: {e}") from e
        if line == "":
            raise ConfirmationError("failed to read confirmation: end of input")
        return is_affirmative(line)

    @contextmanager
    def redirect(self, out: Optional[TextIO] = None, inp: Optional[TextIO] = None) -> Iterator["Console"]:
        """Temporarily swap streams; ``None`` leaves a stream unchanged."""
        prev_out, prev_inp = self._out, self._inp
        if out is not None:
            self._out = out
        if inp is not None:
            self._inp = inp
        try:
            yield self
        finally:
            self._out, self._inp = prev_out, prev_inp
