import urllib.parse


def uri_encode(text: str, encode_slash: bool = True) -> str:
    """Percent-encode everything outside ``A-Z a-z 0-9 - _ . ~``.

    The path segment of the URI is encoded with ``encode_slash=False``,
    query names and values with ``encode_slash=True``.
    """
    return urllib.parse.quote(text, safe="" if encode_slash else "/")
