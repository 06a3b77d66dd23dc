from typing import Iterable, List, Tuple

SENSITIVE_HEADERS = {"authorization", "cookie", "proxy-authorization", "set-cookie"}


def mask_token(text: str, token: str) -> str:
    return text.replace(token, f"{token[:4]}****") if token else text


def mask_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Copy of *headers* safe for logs: credential-bearing values are masked."""
    return [
        (name, mask_token(value, value) if name.lower() in SENSITIVE_HEADERS else value)
        for name, value in headers
    ]
