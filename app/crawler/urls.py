import ipaddress
import re
from urllib.parse import urlparse

ALLOWED_SCHEMES = ("http", "https")

# Letters (IDN included), digits, hyphens, underscores; dot-separated, no empty labels
_HOST_RE = re.compile(r"^[^\W_][\w-]*(\.[\w-]+)*\.?$")


def _is_valid_host(hostname: str) -> bool:
    if ":" in hostname:
        try:
            ipaddress.IPv6Address(hostname)
        except ValueError:
            return False
        return True
    return bool(_HOST_RE.match(hostname))


def is_valid_target_url(url: str) -> bool:
    """True for absolute http(s) URLs with a well-formed host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
        # .port raises ValueError on a malformed port
        parsed.port
    except ValueError:
        return False
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.hostname:
        return False
    return _is_valid_host(parsed.hostname)
