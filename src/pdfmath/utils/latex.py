"""
Math pattern annotation for extracted PDF text.

Provides:
- Fraction, exponent and square-root conversion to LaTeX
- Greek letter and operator symbol substitution (inline math)
- Equation-like run detection (block math)
- LaTeX brace validation

The rules are plain string transforms applied in a fixed order; each one
sees the output of the previous one. This is pattern matching, not parsing:
an equation run stops at the first ``$`` inserted by the symbol rules, so a
formula containing a Greek letter or operator is wrapped in pieces.
"""

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Any, Mapping, Sequence, Tuple

from .layout import PageText

logger = logging.getLogger(__name__)


# ============================================================================
# Symbol Tables
# ============================================================================

GREEK_LETTERS: Mapping[str, str] = MappingProxyType({
    'α': '\\alpha', 'β': '\\beta', 'γ': '\\gamma', 'δ': '\\delta',
    'ε': '\\epsilon', 'ζ': '\\zeta', 'η': '\\eta', 'θ': '\\theta',
    'ι': '\\iota', 'κ': '\\kappa', 'λ': '\\lambda', 'μ': '\\mu',
    'ν': '\\nu', 'ξ': '\\xi', 'π': '\\pi', 'ρ': '\\rho',
    'σ': '\\sigma', 'τ': '\\tau', 'υ': '\\upsilon', 'φ': '\\phi',
    'χ': '\\chi', 'ψ': '\\psi', 'ω': '\\omega',
    'Γ': '\\Gamma', 'Δ': '\\Delta', 'Θ': '\\Theta', 'Λ': '\\Lambda',
    'Ξ': '\\Xi', 'Π': '\\Pi', 'Σ': '\\Sigma', 'Φ': '\\Phi',
    'Ψ': '\\Psi', 'Ω': '\\Omega',
})

MATH_OPERATORS: Mapping[str, str] = MappingProxyType({
    '≤': '\\leq',
    '≥': '\\geq',
    '≠': '\\neq',
    '±': '\\pm',
    '∞': '\\infty',
    '∑': '\\sum',
    '∫': '\\int',
    '∂': '\\partial',
    '∇': '\\nabla',
    '×': '\\times',
    '÷': '\\div',
})

INLINE_DELIMITER = "$"
BLOCK_DELIMITER = "$$"


# ============================================================================
# Patterns
# ============================================================================

_FRACTION_RE = re.compile(r'([0-9]+)/([0-9]+)')
_EXPONENT_RE = re.compile(r'([A-Za-z0-9]+)\^([0-9]+)')
_BRACED_EXPONENT_RE = re.compile(r'([A-Za-z0-9]+)\^\{([^}]+)\}')
_ROOT_GROUP_RE = re.compile(r'√\(([^)]+)\)')
_ROOT_DIGITS_RE = re.compile(r'√([0-9]+)')
_EQUATION_RUN_RE = re.compile(r'[A-Za-z0-9+\-*/^().\s=]+')
_EQUATION_OPERATOR_RE = re.compile(r'[+\-*/^=]')
_DIGIT_RE = re.compile(r'[0-9]')


# ============================================================================
# Rules
# ============================================================================

def convert_fractions(text: str) -> str:
    """``3/4`` -> ``\\frac{3}{4}``. Adds no delimiters."""
    return _FRACTION_RE.sub(lambda m: f"\\frac{{{m.group(1)}}}{{{m.group(2)}}}", text)


def convert_exponents(text: str) -> str:
    """``x^2`` -> ``x^{2}``; already braced exponents are left as they are."""
    text = _EXPONENT_RE.sub(lambda m: f"{m.group(1)}^{{{m.group(2)}}}", text)
    return _BRACED_EXPONENT_RE.sub(lambda m: f"{m.group(1)}^{{{m.group(2)}}}", text)


def convert_roots(text: str) -> str:
    """``√(x+1)`` -> ``\\sqrt{x+1}`` and ``√2`` -> ``\\sqrt{2}``."""
    text = _ROOT_GROUP_RE.sub(lambda m: f"\\sqrt{{{m.group(1)}}}", text)
    return _ROOT_DIGITS_RE.sub(lambda m: f"\\sqrt{{{m.group(1)}}}", text)


def _substitute_symbols(text: str, table: Mapping[str, str]) -> str:
    for char, command in table.items():
        text = text.replace(char, f"{INLINE_DELIMITER}{command}{INLINE_DELIMITER}")
    return text


def convert_greek_letters(text: str) -> str:
    """Replace each Greek letter with its inline-delimited command."""
    return _substitute_symbols(text, GREEK_LETTERS)


def convert_operators(text: str) -> str:
    """Replace each math operator symbol with its inline-delimited command."""
    return _substitute_symbols(text, MATH_OPERATORS)


def _wrap_equation_run(match: "re.Match") -> str:
    run = match.group(0)
    if '=' not in run:
        return run
    if INLINE_DELIMITER in run:
        return run
    if _EQUATION_OPERATOR_RE.search(run) and _DIGIT_RE.search(run):
        return f"{BLOCK_DELIMITER}{run.strip()}{BLOCK_DELIMITER}"
    return run


def wrap_equations(text: str) -> str:
    """
    Wrap equation-like runs in block delimiters.

    A run is a maximal stretch of ASCII letters, digits, whitespace and
    ``+ - * / ^ ( ) . =`` containing at least one ``=``. Runs with a digit
    are stripped and wrapped in ``$$...$$``; others are kept verbatim.
    """
    return _EQUATION_RUN_RE.sub(_wrap_equation_run, text)


Rule = Callable[[str], str]

ANNOTATION_RULES: Tuple[Rule, ...] = (
    convert_fractions,
    convert_exponents,
    convert_roots,
    convert_greek_letters,
    convert_operators,
    wrap_equations,
)


def annotate(text: str, rules: Sequence[Rule] = ANNOTATION_RULES) -> str:
    """
    Run the annotation rules over plain page text.

    Args:
        text: Reconstructed page text
        rules: Ordered transforms (defaults to the full pipeline)

    Returns:
        Text with math wrapped in ``$...$`` or ``$$...$$``
    """
    for rule in rules:
        text = rule(text)
    return text


# ============================================================================
# Annotated Pages
# ============================================================================

@dataclass(frozen=True)
class AnnotatedPage:
    """Annotated content of one page."""
    page_number: int
    content: str

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"Page numbers start at 1, got {self.page_number}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageNum": self.page_number,
            "content": self.content
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotatedPage":
        return cls(page_number=int(data["pageNum"]), content=data["content"])


def annotate_page(
    page: PageText,
    annotator: Callable[[str], str] = annotate
) -> AnnotatedPage:
    """Annotate the reconstructed text of one page."""
    content = annotator(page.raw_text)
    logger.debug(
        f"Page {page.page_number}: {content.count(BLOCK_DELIMITER)} block delimiter(s)"
    )
    return AnnotatedPage(page_number=page.page_number, content=content)


# ============================================================================
# Utility Functions
# ============================================================================

def validate_latex(latex: str) -> Tuple[bool, str]:
    """
    Validate LaTeX syntax.

    Args:
        latex: LaTeX string

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not latex or not latex.strip():
        return False, "Empty LaTeX string"

    # Check balanced braces
    brace_count = 0
    for char in latex:
        if char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
        if brace_count < 0:
            return False, "Unbalanced braces"

    if brace_count != 0:
        return False, "Unbalanced braces"

    # Check for incomplete commands
    if latex.endswith('\\'):
        return False, "Incomplete command"

    return True, ""
