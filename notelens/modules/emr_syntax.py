"""
NoteLens EMR Syntax Scanner
Detects Epic inline markup (SmartPhrases, SmartLists, DotPhrases, wildcards)

Detection uses a broad marker family: the start of any SmartPhrase, SmartList,
dot-phrase or wildcard. Token extraction for parse metadata uses the complete
token forms.
"""

import re
import logging
from typing import List, NamedTuple

logger = logging.getLogger(__name__)


# =============================================================================
# Regular Expression Patterns
# =============================================================================

class EpicSyntaxPatterns:
    """Regular expression patterns for Epic inline tokens"""

    # Opening of any Epic construct: @NAME, .name, {Name, ***
    MARKER = re.compile(r'@[A-Z]|\.[-a-z]|\{[A-Za-z]|\*\*\*')

    # @SMARTPHRASE@ / @SMARTLINK@
    SMART_PHRASE = re.compile(r'@[A-Z][A-Z0-9_]*@')

    # {Mood:304000123} style SmartList pick-lists
    SMART_LIST = re.compile(r'\{[^{}\n]{1,80}:\s*\d+\}')

    # .dotphrase, only at line start or after whitespace so sentence ends do not match
    DOT_PHRASE = re.compile(r'(?:(?<=\s)|^)\.[A-Za-z][A-Za-z0-9_]{1,}', re.MULTILINE)

    # *** blanks left for the author to fill in
    WILDCARD = re.compile(r'\*\*\*')

    ALL = {
        "smart_phrase": SMART_PHRASE,
        "smart_list": SMART_LIST,
        "dot_phrase": DOT_PHRASE,
        "wildcard": WILDCARD,
    }


class EpicToken(NamedTuple):
    kind: str
    text: str
    position: int


# =============================================================================
# Public API
# =============================================================================

def has_epic_syntax(text: str) -> bool:
    """True when any Epic marker or complete Epic token appears in the text"""
    if not text:
        return False
    if EpicSyntaxPatterns.MARKER.search(text):
        return True
    return any(pattern.search(text) for pattern in EpicSyntaxPatterns.ALL.values())


def find_epic_tokens(text: str) -> List[EpicToken]:
    """
    Locate every Epic inline token in the text

    Args:
        text: Note or snippet text

    Returns:
        Tokens ordered by position
    """
    if not text:
        return []

    tokens = []
    for kind, pattern in EpicSyntaxPatterns.ALL.items():
        for match in pattern.finditer(text):
            tokens.append(EpicToken(kind=kind, text=match.group(0), position=match.start()))

    tokens.sort(key=lambda t: (t.position, t.kind))
    logger.debug(f"Found {len(tokens)} Epic tokens")
    return tokens


def unique_token_texts(tokens: List[EpicToken], kind: str) -> List[str]:
    """Distinct token texts of one kind, first-seen order"""
    seen = []
    for token in tokens:
        if token.kind == kind and token.text not in seen:
            seen.append(token.text)
    return seen
