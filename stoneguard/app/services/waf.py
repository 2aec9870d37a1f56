"""
WAF signature matcher.

Stateless: given the parts of a request, returns the categories of attack
signatures found. Categories, never raw payloads, are what gets audited.
"""

import re
from typing import Any, Iterable, Iterator, List, Optional

SCANNER_USER_AGENT = "SCANNER_USER_AGENT"
SQL_INJECTION = "SQL_INJECTION"
XSS = "XSS"
PATH_TRAVERSAL = "PATH_TRAVERSAL"

SCANNER_USER_AGENT_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"sqlmap",
        r"nikto",
        r"nmap",
        r"masscan",
        r"hydra",
        r"python-requests",
        r"curl",
        r"wget",
        r"scanner",
        r"bot",
        r"crawler",
        r"spider",
    )
]

SQL_INJECTION_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bunion\b.*\bselect\b",
        r"\bdrop\b.*\btable\b",
        r"\binsert\b.*\binto\b",
        r"\bdelete\b.*\bfrom\b",
        r"\bupdate\b.*\bset\b",
        r"\bexec\b.*\(",
        r"xp_cmdshell",
        r"'\s*or\s+'?\d+'?\s*=\s*'?\d+",
        r";\s*--",
        r"/\*.*\*/",
    )
]

XSS_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"<script",
        r"javascript:",
        r"onerror\s*=",
        r"onload\s*=",
        r"<iframe",
        r"<object",
        r"<embed",
    )
]

PATH_TRAVERSAL_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\.\./",
        r"\.\.\\",
        r"etc/passwd",
        r"proc/self",
        r"windows/system32",
    )
]

# Body fields never scanned: secrets must not be inspected or echoed
UNSCANNED_FIELDS = frozenset(
    {"password", "passwordConfirmation", "password_confirmation", "captchaToken"}
)


def _any_match(patterns: Iterable[re.Pattern], values: Iterable[str]) -> bool:
    return any(pattern.search(value) for value in values for pattern in patterns)


def iter_strings(payload: Any) -> Iterator[str]:
    """Every string value in a decoded JSON body, skipping unscanned fields."""
    if isinstance(payload, str):
        yield payload
    elif isinstance(payload, dict):
        for key, value in payload.items():
            if key in UNSCANNED_FIELDS:
                continue
            if isinstance(key, str):
                yield key
            yield from iter_strings(value)
    elif isinstance(payload, (list, tuple)):
        for item in payload:
            yield from iter_strings(item)


class WafFilter:
    def inspect(
        self,
        path: str,
        query_values: Iterable[str],
        user_agent: Optional[str],
        body: Any = None,
    ) -> List[str]:
        categories = []
        agent = user_agent or ""
        if not agent.strip() or _any_match(SCANNER_USER_AGENT_PATTERNS, [agent]):
            categories.append(SCANNER_USER_AGENT)

        query = list(query_values)
        body_values = list(iter_strings(body))

        # SQL signatures run over the query string only
        if _any_match(SQL_INJECTION_PATTERNS, query):
            categories.append(SQL_INJECTION)
        if _any_match(XSS_PATTERNS, query + body_values):
            categories.append(XSS)
        if _any_match(PATH_TRAVERSAL_PATTERNS, [path] + query):
            categories.append(PATH_TRAVERSAL)

        return categories
