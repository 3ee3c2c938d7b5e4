from ussd.core.outcomes import MenuResult

CON_PREFIX = "CON "
END_PREFIX = "END "


def render(result: MenuResult) -> str:
    """Gateway wire form: CON keeps the session open, END closes it."""
    prefix = END_PREFIX if result.terminal else CON_PREFIX
    return f"{prefix}{result.text}"
