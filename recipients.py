"""Email recipient parsing for admin bulk email.

Recipients come from a free-text box (comma, semicolon or newline
separated) and/or an uploaded CSV. Addresses are lowercased, deduplicated
in first-seen order, and anything that doesn't look like an address is
dropped.
"""

import csv
import io
import re
from typing import Iterable, List, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CSV_DELIMITERS = [",", ";", "\t", "|"]


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def deduplicate_emails(emails: Iterable[str]) -> List[str]:
    seen = {}
    for email in emails:
        cleaned = email.strip().strip("\"'").strip().lower()
        if cleaned and is_valid_email(cleaned):
            seen.setdefault(cleaned, None)
    return list(seen)


def parse_emails_from_text(text: str) -> List[str]:
    """
    >>> parse_emails_from_text("a@x.com, a@x.com, not-an-email")
    ['a@x.com']
    """
    return deduplicate_emails(re.split(r"[,;\r\n]+", text or ""))


def detect_delimiter(line: str) -> str:
    for delimiter in CSV_DELIMITERS:
        if delimiter in line:
            return delimiter
    return ","


def parse_emails_from_csv(content: str) -> List[str]:
    """Pull every address-looking field out of CSV content, header or not."""
    lines = [line for line in (content or "").splitlines() if line.strip()]
    if not lines:
        return []
    reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=detect_delimiter(lines[0]))
    return deduplicate_emails(field for row in reader for field in row)


def collect_recipients(text: Optional[str] = None, csv_content: Optional[str] = None) -> List[str]:
    return deduplicate_emails(parse_emails_from_text(text or "") + parse_emails_from_csv(csv_content or ""))
