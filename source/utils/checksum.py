"""Issue identity module."""
import hashlib

IDENTITY_SEPARATOR = "!"


def compute_identity(cell_name: str, host_name: str, object_name: str) -> bytes:
    """Get raw 20 byte SHA-1 digest identifying an object within a cell."""
    ci_name = IDENTITY_SEPARATOR.join((cell_name, host_name, object_name))
    return hashlib.sha1(ci_name.encode("utf-8")).digest()
