"""File helpers shared by the wizard, the API and the web views."""

# Extensions offered by the file picker
ACCEPTED_EXTENSIONS = [".pdf", ".doc", ".docx", ".txt", ".jpg", ".jpeg", ".png"]


def format_file_size(size: int) -> str:
    """Format a byte count as B, KB or MB with one decimal.

    >>> format_file_size(500000)
    '488.3 KB'
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def is_previewable(mime: str | None) -> bool:
    return bool(mime) and mime.startswith("image/")

