"""Low-level helpers for scanning SQL text.

Analysis never tokenizes SQL fully. Instead, quoted literals and
parenthesized groups are *masked* (replaced by filler of the same length) so
keyword searches on the masked text only see top-level syntax, and the
positions found there are used to slice the original text.
"""

import re

IDENT = r'(?:`[^`]+`|"[^"]+"|\[[^\]]+\]|[A-Za-z_][\w$#]*)'

_BOOLEAN_KEYWORDS = re.compile(r"\b(BETWEEN|AND|OR)\b", re.IGNORECASE)


def strip_comments(sql: str) -> str:
    """Remove ``--`` and ``/* */`` comments that are not inside quotes."""
    out = []
    i = 0
    quote = None
    while i < len(sql):
        ch = sql[i]
        if quote:
            out.append(ch)
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in ("'", '"', "`"):
            quote = ch
            out.append(ch)
            i += 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = len(sql) if end == -1 else end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = len(sql) if end == -1 else end + 2
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def mask_quotes(text: str) -> str:
    """
    Replace the contents of quoted literals and identifiers with underscores.

    Delimiters are kept so literal boundaries stay visible. Doubled quotes
    (``'it''s'``) stay inside the literal.
    """
    out = list(text)
    i = 0
    closers = {"'": "'", '"': '"', "`": "`", "[": "]"}
    while i < len(text):
        ch = text[i]
        if ch in closers:
            closer = closers[ch]
            j = i + 1
            while j < len(text):
                if text[j] == closer:
                    if closer == "'" and j + 1 < len(text) and text[j + 1] == "'":
                        j += 2
                        continue
                    break
                j += 1
            for k in range(i + 1, min(j, len(text))):
                out[k] = "_"
            i = j + 1
        else:
            i += 1
    return "".join(out)


def mask_parens(text: str) -> str:
    """Replace everything nested inside parentheses with spaces (quotes first)."""
    masked = mask_quotes(text)
    out = list(masked)
    depth = 0
    for i, ch in enumerate(masked):
        if ch == "(":
            if depth > 0:
                out[i] = " "
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
            if depth > 0:
                out[i] = " "
        elif depth > 0:
            out[i] = " "
    return "".join(out)


def find_top_level(text: str, pattern: str, start: int = 0) -> re.Match | None:
    """Search a regex against the parenthesis/quote-masked text."""
    return re.compile(pattern, re.IGNORECASE).search(mask_parens(text), start)


def matching_paren(text: str, open_index: int) -> int:
    """
    Find the index of the parenthesis closing the one at ``open_index``.

    Returns:
        Index of the closing parenthesis, or -1 when unbalanced
    """
    masked = mask_quotes(text)
    depth = 0
    for i in range(open_index, len(masked)):
        if masked[i] == "(":
            depth += 1
        elif masked[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def strip_outer_parens(text: str) -> str:
    """Remove parentheses that wrap the entire expression."""
    text = text.strip()
    while text.startswith("(") and matching_paren(text, 0) == len(text) - 1:
        text = text[1:-1].strip()
    return text


def split_top_level(text: str, keyword: str) -> list[str]:
    """
    Split on a top-level boolean keyword (``AND`` or ``OR``).

    The ``AND`` of ``x BETWEEN a AND b`` is not a split point.

    Args:
        text: Boolean expression
        keyword: "AND" or "OR"

    Returns:
        Stripped, non-empty parts (the whole text when no split point exists)
    """
    masked = mask_parens(text)
    keyword = keyword.upper()
    parts = []
    last = 0
    pending_between = False
    for match in _BOOLEAN_KEYWORDS.finditer(masked):
        word = match.group(1).upper()
        if word == "BETWEEN":
            pending_between = True
            continue
        if word == "AND" and pending_between:
            pending_between = False
            continue
        if word == keyword:
            parts.append(text[last:match.start()])
            last = match.end()
    parts.append(text[last:])
    return [part.strip() for part in parts if part.strip()]


def split_commas(text: str) -> list[str]:
    """Split on top-level commas."""
    masked = mask_parens(text)
    parts = []
    last = 0
    for i, ch in enumerate(masked):
        if ch == ",":
            parts.append(text[last:i])
            last = i + 1
    parts.append(text[last:])
    return [part.strip() for part in parts if part.strip()]


def unquote_identifier(text: str) -> tuple[str, str | None]:
    """
    Strip identifier quoting.

    Returns:
        (bare name, quote style) where quote style is one of
        ``"`"``, ``'"'``, ``"["`` or None for unquoted identifiers
    """
    text = text.strip()
    if len(text) >= 2:
        if text[0] == "`" and text[-1] == "`":
            return text[1:-1], "`"
        if text[0] == '"' and text[-1] == '"':
            return text[1:-1], '"'
        if text[0] == "[" and text[-1] == "]":
            return text[1:-1], "["
    return text, None


def quote_identifier(name: str, quote_style: str | None) -> str:
    """Re-apply a quote style captured by :func:`unquote_identifier`."""
    if quote_style == "`":
        return f"`{name}`"
    if quote_style == '"':
        return f'"{name}"'
    if quote_style == "[":
        return f"[{name}]"
    return name


def split_qualified(text: str) -> list[str]:
    """Split ``a.b.c`` on dots that are outside identifier quotes."""
    masked = mask_quotes(text)
    parts = []
    last = 0
    for i, ch in enumerate(masked):
        if ch == ".":
            parts.append(text[last:i].strip())
            last = i + 1
    parts.append(text[last:].strip())
    return parts
