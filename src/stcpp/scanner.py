_QUOTES = "\"'"


def is_ident_char(ch: str, index: int) -> bool:
    if index < 0 or not ch:
        return False
    if ch == "_":
        return True
    if not ch.isascii():
        return False
    return ch.isalnum() if index > 0 else ch.isalpha()


def scan_identifier(text: str, pos: int) -> int:
    end = pos
    while end < len(text) and is_ident_char(text[end], end - pos):
        end += 1
    return end


def skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def skip_literal(text: str, pos: int) -> int:
    quote = text[pos]
    index = pos + 1
    while index < len(text):
        ch = text[index]
        if ch == "\\":
            index += 2
            continue
        if ch == quote:
            return index + 1
        index += 1
    return len(text)


def skip_number(text: str, pos: int) -> int:
    index = pos
    while index < len(text) and (text[index].isalnum() or text[index] in "_."):
        index += 1
    return index


def skip_parenthesized(text: str, pos: int) -> int:
    # pos is at "("; -1 means the text ended before the balancing ")".
    depth = 0
    index = pos
    while index < len(text):
        ch = text[index]
        if ch in _QUOTES:
            index = skip_literal(text, index)
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return -1


def is_quote(ch: str) -> bool:
    return ch in _QUOTES and ch != ""
