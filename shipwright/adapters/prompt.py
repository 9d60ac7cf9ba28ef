"""
Terminal prompter — yes/no questions through click.
"""

from __future__ import annotations

import click

from shipwright.adapters.base import Prompter
from shipwright.core.errors import ValidationError


class ClickPrompter(Prompter):
    def __init__(self, interactive: bool = True):
        self._interactive = interactive

    def confirm(self, message: str, default: bool = False) -> bool:
        if not self._interactive:
            raise ValidationError("cannot prompt for confirmation in a non-interactive session; pass --yes")
        try:
            return click.confirm(message, default=default)
        except click.Abort:
            # Ctrl-C or EOF at the prompt.
            return False
