"""Project and package name validation."""

from __future__ import annotations

import re

from buildsvc.exceptions import InvalidPackageNameError, InvalidProjectNameError

__all__ = [
    "RESERVED_PACKAGE_NAMES",
    "check_package_name",
    "check_project_name",
    "is_valid_package_name",
    "is_valid_project_name",
    "parent_namespaces",
]

MAX_NAME_LENGTH = 200

RESERVED_PACKAGE_NAMES = frozenset({"_product", "_pattern", "_project", "_patchinfo"})

_PROJECT_RE = re.compile(r"\A[-+\w.:]{1,200}\Z", re.ASCII)
_PACKAGE_RE = re.compile(r"\A([a-zA-Z0-9]|(_product|_patchinfo)\w)[-+\w.]*\Z", re.ASCII)
_MULTIBUILD_PACKAGE_RE = re.compile(
    r"\A([a-zA-Z0-9]|(_product|_patchinfo)\w)[-+\w.:]*\Z", re.ASCII
)


def is_valid_project_name(name: object) -> bool:
    """
    Check a colon separated project name.

    Names may not start with ``:``, ``.`` or ``_``, may not end with ``:``
    and a ``:`` may not be followed by another separator character.

    Examples
    --------
    >>> is_valid_project_name("home:user:branches:devel")
    True
    >>> is_valid_project_name("_invalid")
    False
    >>> is_valid_project_name("..")
    False
    """
    if not isinstance(name, str) or not name or name == "0":
        return False
    if re.search(r":[:._]", name) or name[0] in ":._" or name.endswith(":"):
        return False
    return bool(_PROJECT_RE.match(name))


def is_valid_package_name(name: object, allow_multibuild: bool = False) -> bool:
    """
    Check a package name.

    Parameters
    ----------
    name : object
        Candidate name
    allow_multibuild : bool, optional
        Accept ``pkg:flavor`` style names, by default False

    Examples
    --------
    >>> is_valid_package_name("_project")
    True
    >>> is_valid_package_name("my package")
    False
    """
    if not isinstance(name, str) or not name or name == "0":
        return False
    if len(name) > MAX_NAME_LENGTH:
        return False
    if name in RESERVED_PACKAGE_NAMES:
        return True
    pattern = _MULTIBUILD_PACKAGE_RE if allow_multibuild else _PACKAGE_RE
    return bool(pattern.match(name))


def check_project_name(name: object) -> str:
    """Return ``name`` or raise :class:`InvalidProjectNameError`."""
    if not is_valid_project_name(name):
        msg = f"invalid project name '{name}'"
        raise InvalidProjectNameError(msg)
    return name  # type: ignore[return-value]


def check_package_name(name: object, allow_multibuild: bool = False) -> str:
    """Return ``name`` or raise :class:`InvalidPackageNameError`."""
    if not is_valid_package_name(name, allow_multibuild=allow_multibuild):
        msg = f"invalid package name '{name}'"
        raise InvalidPackageNameError(msg)
    return name  # type: ignore[return-value]


def parent_namespaces(name: str) -> list[str]:
    """
    List enclosing namespaces of a project, nearest first.

    Examples
    --------
    >>> parent_namespaces("a:b:c")
    ['a:b', 'a']
    """
    parts = name.split(":")
    return [":".join(parts[:i]) for i in range(len(parts) - 1, 0, -1)]
