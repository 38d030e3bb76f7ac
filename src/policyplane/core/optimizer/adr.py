"""Markdown rendering for rule ADRs."""
from __future__ import annotations

from jinja2 import Environment

from policyplane.data import read_text
from policyplane.core.utils.time import ms_to_iso

from .models import RuleADR

ADR_TEMPLATE = "adr.md.j2"


def render_adr(adr: RuleADR) -> str:
    """Render ``adr`` as a markdown document."""
    env = Environment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)
    template = env.from_string(read_text("templates", ADR_TEMPLATE))
    return template.render(
        adr=adr,
        change=adr.change,
        result=adr.test_result,
        date=ms_to_iso(adr.date),
    )


__all__ = ["render_adr", "ADR_TEMPLATE"]
