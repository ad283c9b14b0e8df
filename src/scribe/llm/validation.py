"""Structural completeness checks for generated text.

These are heuristics, not parsers: they only count markers. Each rule is a
plain function so it can be used (and tested) on its own; ``is_complete``
runs the enabled ones in a fixed order.

Rules, in evaluation order:
    truncation_indicator: trimmed text ends with a configured indicator.
    latex_balance: ``\\begin{`` count differs from ``\\end{`` count.
    code_fence_balance: odd number of triple-backtick fences.
    bracket_balance: ``[``/``{`` count differs from ``]``/``}`` count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

DEFAULT_TRUNCATION_INDICATORS: Tuple[str, ...] = (
    "...",
    "[continued]",
    "[truncated]",
    "To be continued",
    "Continued in next part",
)

LATEX_BEGIN = "\\begin{"
LATEX_END = "\\end{"
CODE_FENCE = "```"

RULE_TRUNCATION_INDICATOR = "truncation_indicator"
RULE_LATEX_BALANCE = "latex_balance"
RULE_CODE_FENCE_BALANCE = "code_fence_balance"
RULE_BRACKET_BALANCE = "bracket_balance"


@dataclass(frozen=True)
class ValidationConfig:
    """Which completeness rules to apply.

    Attributes:
        truncation_indicators: Suffixes that mark text as cut off.
        check_latex: Require balanced LaTeX environments.
        check_code_fences: Require every code fence to be closed.
        check_brackets: Require balanced square and curly brackets.
    """

    truncation_indicators: Tuple[str, ...] = DEFAULT_TRUNCATION_INDICATORS
    check_latex: bool = True
    check_code_fences: bool = True
    check_brackets: bool = True

    def __post_init__(self) -> None:
        # Accept one string or any iterable of strings; store an immutable tuple.
        indicators = self.truncation_indicators
        if isinstance(indicators, str):
            indicators = (indicators,)
        object.__setattr__(self, "truncation_indicators", tuple(indicators))


def ends_with_truncation_indicator(text: str, indicators: Iterable[str]) -> bool:
    """Return True if the trimmed text ends with any indicator."""
    trimmed = text.strip()
    return any(indicator and trimmed.endswith(indicator) for indicator in indicators)


def latex_environments_balanced(text: str) -> bool:
    return text.count(LATEX_BEGIN) == text.count(LATEX_END)


def code_fences_balanced(text: str) -> bool:
    return text.count(CODE_FENCE) % 2 == 0


def brackets_balanced(text: str) -> bool:
    opening = text.count("[") + text.count("{")
    closing = text.count("]") + text.count("}")
    return opening == closing


def find_failed_rule(text: str, config: Optional[ValidationConfig] = None) -> Optional[str]:
    """Return the name of the first failing rule, or None if text looks complete.

    Args:
        text: Accumulated generated text.
        config: Rules to apply. Defaults to every rule with the default
            indicators.

    Returns:
        One of the ``RULE_*`` names, or None.
    """
    config = config or ValidationConfig()

    if ends_with_truncation_indicator(text, config.truncation_indicators):
        return RULE_TRUNCATION_INDICATOR
    if config.check_latex and not latex_environments_balanced(text):
        return RULE_LATEX_BALANCE
    if config.check_code_fences and not code_fences_balanced(text):
        return RULE_CODE_FENCE_BALANCE
    if config.check_brackets and not brackets_balanced(text):
        return RULE_BRACKET_BALANCE
    return None


def is_complete(text: str, config: Optional[ValidationConfig] = None) -> bool:
    """Return True if no enabled rule judges the text truncated."""
    return find_failed_rule(text, config) is None
