from reviewsync_core.config import is_excluded

NON_TEXT_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".webp",
    ".bmp",
    ".pdf",
    ".docx",
    ".xlsx",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    ".mp4",
    ".mp3",
    ".wav",
    ".ogg",
    ".zip",
    ".tar",
    ".gz",
    ".rar",
    ".7z",
    ".lock",  # e.g. Pipfile.lock, poetry.lock
}


def is_text_file(file_name: str) -> bool:
    """Return True for files that can carry line-anchored review comments."""
    return not any(file_name.lower().endswith(ext) for ext in NON_TEXT_EXTENSIONS)


def changed_text_files(files, exclude: list | None = None) -> list[str]:
    """Filenames of the changed text files in a PR diff, minus removed and excluded ones."""
    return [
        f.filename
        for f in files
        if f.status != "removed" and is_text_file(f.filename) and not is_excluded(f.filename, exclude or [])
    ]
