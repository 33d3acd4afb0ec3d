"""
Key and group name derivation.

Every key and group the app touches is prefixed so entries never collide
with other users of the same cache backend:

    key:           {prefix}_{name}
    group:         {prefix}_{group or "default"}
    version key:   {prefix}_version
"""

from typing import Union

DEFAULT_GROUP = "default"
VERSION_NAME = "version"
# Joins group and key in physical store keys, see DjangoObjectStore.make_key.
GROUP_SEPARATOR = ":"

KeyName = Union[str, int]


class KeyNamer:
    """
    Builds prefixed cache keys and group names.

    Example Usage:
        >>> namer = KeyNamer("myapp")
        >>> namer.key("posts")
        'myapp_posts'
        >>> namer.group("")
        'myapp_default'
    """

    def __init__(self, prefix: str):
        if not isinstance(prefix, str) or not prefix:
            raise ValueError("prefix must be a non-empty string")
        self.prefix = prefix

    @property
    def version_key(self) -> str:
        """Key of the per-group version counter."""
        return f"{self.prefix}_{VERSION_NAME}"

    def key(self, name: KeyName) -> str:
        """
        Prefix a caller supplied object cache key.

        Raises:
            ValueError: If the name is empty, not a str/int, or reserved
        """
        self._validate_name(name)
        if name == VERSION_NAME:
            raise ValueError(f"'{VERSION_NAME}' is reserved for the group version counter")
        return f"{self.prefix}_{name}"

    def transient_key(self, name: KeyName) -> str:
        """Prefix a transient key. Transient scopes hold no version counter."""
        self._validate_name(name)
        return f"{self.prefix}_{name}"

    def group(self, name: KeyName = "") -> str:
        """
        Prefix a group name, falling back to the default group.

        Raises:
            ValueError: If the name is not a str/int or contains ``:``
        """
        if name == "" or name is None:
            name = DEFAULT_GROUP
        self._validate_name(name)
        if GROUP_SEPARATOR in str(name):
            raise ValueError(f"group name cannot contain '{GROUP_SEPARATOR}'")
        return f"{self.prefix}_{name}"

    def _validate_name(self, name: KeyName) -> None:
        if isinstance(name, bool) or not isinstance(name, (str, int)):
            raise ValueError(f"name must be a string or integer, got {type(name).__name__}")
        if name == "":
            raise ValueError("name cannot be empty")
