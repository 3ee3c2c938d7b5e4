from typing import Optional, Tuple

# Gateway delimiter between successive answers: "2*+15551234567*1234"
DELIMITER = "*"


def decode_path(text: Optional[str]) -> Tuple[str, ...]:
    """
    Split the cumulative session text into answers, oldest first.
    Empty text is first contact and decodes to an empty tuple. Every other string,
    however malformed, decodes to a token tuple; meaning is decided downstream.
    """
    if not text:
        return ()
    return tuple(text.split(DELIMITER))


def last_token(tokens: Tuple[str, ...]) -> str:
    """The newest answer: the one the current step has to act on."""
    return tokens[-1] if tokens else ""
