import html
from typing import Optional


def sanitize_string(value: Optional[str]) -> str:
    """
    Escape HTML special characters (quotes included) so customer-supplied text
    can go into email and calendar HTML. None becomes an empty string.
    """
    if value is None:
        return ""
    return html.escape(str(value), quote=True)
