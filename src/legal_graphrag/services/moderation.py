"""Upload moderation: file type, size, name and duplicate checks."""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

ALLOWED_FILE_TYPES = {
    "application/pdf",
    "text/markdown",
    "text/x-markdown",
    # Some browsers send .md as text/plain
    "text/plain",
}
ALLOWED_EXTENSIONS = (".md", ".pdf")

SMALL_FILE_BYTES = 1024
MAX_FILE_NAME_LENGTH = 255
DUPLICATE_WINDOW = timedelta(hours=1)

PROHIBITED_PATTERNS = [
    re.compile(r"\.(exe|bat|cmd|sh|ps1|vbs|js|jar)$", re.IGNORECASE),
    re.compile(r"^\..*$"),
    re.compile(r'[<>:"|?*]'),
]
JAPANESE_CHARACTERS = re.compile(r"[\u3000-\u303f\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf]")

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


@dataclass
class ContentCheckResult:
    """Outcome of a moderation check; ``reason`` is set when not allowed."""

    allowed: bool
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def reject(cls, reason: str) -> "ContentCheckResult":
        return cls(allowed=False, reason=reason)


@dataclass
class UploadRecord:
    """A previous upload, as read back from the graph."""

    file_name: str
    uploaded_by: str
    uploaded_at: datetime


def check_file_basics(name: str, content_type: str | None, size: int, max_bytes: int) -> ContentCheckResult:
    lower = name.lower()
    if content_type not in ALLOWED_FILE_TYPES and not lower.endswith(ALLOWED_EXTENSIONS):
        return ContentCheckResult.reject(
            "許可されていないファイル形式です。PDFまたはMarkdown（.md）ファイルのみアップロード可能です。"
            f"（検出: {content_type}）"
        )

    if size > max_bytes:
        return ContentCheckResult.reject(
            f"ファイルサイズが大きすぎます。最大{max_bytes // (1024 * 1024)}MBまでアップロード可能です。"
            f"（検出: {size / 1024 / 1024:.2f}MB）"
        )

    warnings = []
    if size < SMALL_FILE_BYTES:
        warnings.append("ファイルサイズが非常に小さいです。内容が含まれていない可能性があります。")

    if any(pattern.search(name) for pattern in PROHIBITED_PATTERNS):
        return ContentCheckResult.reject(
            "無効なファイル名です。実行可能ファイルや特殊文字を含むファイル名は使用できません。"
        )

    if len(name) > MAX_FILE_NAME_LENGTH:
        return ContentCheckResult.reject("ファイル名が長すぎます。255文字以内にしてください。")

    if JAPANESE_CHARACTERS.search(name):
        warnings.append("ファイル名に日本語が含まれています。システムによっては正しく処理されない可能性があります。")

    return ContentCheckResult(allowed=True, warnings=warnings)


def check_duplicate(
    name: str,
    member_email: str,
    recent_uploads: list[UploadRecord],
    now: datetime | None = None,
) -> ContentCheckResult:
    """Reject a re-upload of the same file by the same member within an hour."""
    cutoff = (now or datetime.now(timezone.utc)) - DUPLICATE_WINDOW
    for upload in recent_uploads:
        if upload.uploaded_by == member_email and upload.file_name == name and upload.uploaded_at > cutoff:
            return ContentCheckResult.reject(
                "同じファイルが1時間以内にアップロードされています。重複アップロードを防ぐため、しばらくお待ちください。"
            )
    return ContentCheckResult(allowed=True)


def perform_content_check(
    name: str,
    content_type: str | None,
    size: int,
    member_email: str,
    max_bytes: int,
    recent_uploads: list[UploadRecord] | None = None,
) -> ContentCheckResult:
    """Basic checks first, then the duplicate check; warnings are merged."""
    basics = check_file_basics(name, content_type, size, max_bytes)
    if not basics.allowed:
        return basics

    duplicate = check_duplicate(name, member_email, recent_uploads or [])
    if not duplicate.allowed:
        return duplicate

    return ContentCheckResult(allowed=True, warnings=basics.warnings + duplicate.warnings)


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {SIZE_UNITS[i]}"


def sanitize_file_name(name: str) -> str:
    safe = re.sub(r'[<>:"|?*]', "", name)
    safe = re.sub(r"[/\\]", "-", safe)
    safe = re.sub(r"\.+", ".", safe)
    safe = safe.strip().strip(".")
    return safe or f"document_{int(time.time() * 1000)}.pdf"
