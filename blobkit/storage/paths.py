"""
Blob name utilities for '/'-delimited virtual directories.
"""

DELIMITER = "/"
MAX_NAME_LENGTH = 1024
MAX_SEGMENTS = 254


class BlobNames:
    """
    Helpers for blob names and virtual directory prefixes.

    Blob names look like paths:
    - logs/2024/app.log       -> leaf under virtual directories logs/ and logs/2024/
    - myblob                  -> leaf at the container root
    """

    @staticmethod
    def validate(name: str) -> str:
        """
        Check a blob name against the service naming rules.

        Returns:
            The name unchanged

        Raises:
            ValueError: If the name is empty, too long or too deeply nested
        """
        if not name:
            raise ValueError("Blob name must not be empty")
        if len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Blob name longer than {MAX_NAME_LENGTH} characters: {name[:40]}...")
        if name.count(DELIMITER) + 1 > MAX_SEGMENTS:
            raise ValueError(f"Blob name has more than {MAX_SEGMENTS} segments: {name[:40]}...")
        return name

    @staticmethod
    def as_directory(prefix: str) -> str:
        """Ensure a prefix ends with the delimiter."""
        return prefix if prefix.endswith(DELIMITER) else prefix + DELIMITER

    @staticmethod
    def collapse(name: str, prefix: str = "") -> str | None:
        """
        Collapse a name to the next directory level below a prefix.

        Args:
            name: Blob name like "a/b/c"
            prefix: Listing prefix like "a/"

        Returns:
            The directory prefix ("a/b/") if the name lies deeper than one
            level below the prefix, otherwise None (the name is a leaf at
            this level)
        """
        if not name.startswith(prefix):
            raise ValueError(f"Name {name} does not start with prefix {prefix}")
        rest = name[len(prefix) :]
        index = rest.find(DELIMITER)
        if index == -1:
            return None
        return prefix + rest[: index + 1]
