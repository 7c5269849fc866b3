"""Validation helpers for Vault mount paths and namespaces."""

import re

_RESERVED_MOUNT_PREFIXES = ("sys/", "auth/", "identity/", "cubbyhole/")
_RESERVED_NAMESPACE_NAMES = frozenset(
    {".", "..", "root", "sys", "audit", "auth", "cubbyhole", "identity"}
)

MOUNT_PATH_PATTERN = re.compile(r"^[a-z0-9_-]+(?:/[a-z0-9_-]+)*/?$")


def is_valid_mount_path(mount: str) -> bool:
    """Check whether ``mount`` is a valid Vault mount path.

    Mount paths are lowercase segments of ``[a-z0-9_-]`` separated by single
    forward slashes, with an optional trailing slash. They may not start with
    a slash or with one of the reserved system prefixes.
    """
    if not mount or mount.startswith("/"):
        return False
    if any(f"{mount}/".startswith(prefix) for prefix in _RESERVED_MOUNT_PREFIXES):
        return False
    return MOUNT_PATH_PATTERN.match(mount) is not None


def is_valid_namespace_name(name: str) -> bool:
    if not name or name in _RESERVED_NAMESPACE_NAMES:
        return False
    return " " not in name and not name.endswith("/")


def is_valid_namespace(namespace: str) -> bool:
    """Check whether every segment of a (possibly nested) namespace is valid."""
    if namespace.endswith("/"):
        return False
    return all(is_valid_namespace_name(part) for part in namespace.split("/"))


def strip_leading_slash(path: str) -> str:
    return path[1:] if path.startswith("/") else path
