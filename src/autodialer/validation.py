import re
from dataclasses import dataclass, field

NON_DIAL_CHARS = re.compile(r"[^\d+]")


def is_valid_phone_number(number: str) -> bool:
    """Loose plausibility check on a dialable number.

    Separators are ignored for the length check only; the number itself is
    queued exactly as entered.
    """
    clean = NON_DIAL_CHARS.sub("", number or "")
    if clean.startswith("+") and len(clean) >= 10:
        return True
    return 7 <= len(clean) <= 15


@dataclass
class BulkImport:
    numbers: list = field(default_factory=list)
    skipped: list = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return len(self.numbers)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def message(self) -> str:
        added, skipped = self.added_count, self.skipped_count
        if added and skipped:
            return f"Added {added} numbers, skipped {skipped} invalid numbers"
        if added:
            return f"Successfully added {added} numbers"
        if skipped:
            return "No valid numbers found. Please check the format"
        return "No numbers to import"


def parse_bulk_numbers(text: str) -> BulkImport:
    """Split pasted text into one number per line, keeping input order.

    Blank lines are dropped silently; non-blank lines that fail
    is_valid_phone_number() are reported as skipped.
    """
    result = BulkImport()
    for line in (text or "").splitlines():
        number = line.strip()
        if not number:
            continue
        if is_valid_phone_number(number):
            result.numbers.append(number)
        else:
            result.skipped.append(number)
    return result
