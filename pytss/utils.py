import sys
from collections.abc import Mapping


def plist_access_path(d, path: tuple, type_=None, required=False):
    for component in path:
        if not isinstance(d, Mapping):
            d = None
            break
        d = d.get(component)
        if d is None:
            break

    if type_ is not None and not isinstance(d, type_):
        # wrong type
        d = None

    if d is None and required:
        raise KeyError(f"path: {path} doesn't exist in given plist object")

    return d


def hex_to_uint(value: str) -> int:
    """Decode a build manifest identifier such as ``"0x8930"`` or ``"8930"``"""
    value = value.strip()
    if not value:
        raise ValueError("empty hex string")
    result = int(value, 16)
    if result < 0:
        raise ValueError(f"negative value: {value}")
    return result


def ecid_to_string(ecid: int) -> str:
    if not ecid:
        raise ValueError("invalid ECID passed")
    return str(ecid)


def host_platform() -> str:
    return "windows" if sys.platform == "win32" else "mac"
