"""Utility functions for CLI output."""


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count in human-readable form.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_listing_line(pasta_id: int, content: str, width: int) -> str:
    """
    Render one pasta as a single terminal line.

    Newlines are shown as a literal ``\\n`` and tabs as spaces; the snippet is
    cut so the line fits in `width` columns.

    Args:
        pasta_id: Pasta id, zero-padded to five digits
        content: Pasta content
        width: Terminal width in columns
    """
    flat = content.replace("\n", "\\n").replace("\t", " ")
    available = max(width - 6, 0)
    return f"{pasta_id:05} {flat[:available]}"
