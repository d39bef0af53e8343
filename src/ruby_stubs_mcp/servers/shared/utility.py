TRUNCATION_MARKER = "... [the middle portion has been truncated, retrieve the symbol directly with a larger limit to get the full text] ..."


def truncate_text(text: str, max_length: int) -> str:
    """If the text is longer than the max length, keep the first max_length / 2 and the last max_length / 2 characters."""

    if max_length <= 0 or len(text) <= max_length:
        return text

    first_half = text[: max_length // 2]
    last_half = text[-(max_length // 2) :]

    return (first_half + "\n\n" + TRUNCATION_MARKER + "\n\n" + last_half).strip()


def truncate_documentation(documentation: str | None, max_length: int) -> str | None:
    if documentation is None:
        return None

    return truncate_text(documentation, max_length)
