"""Meet CSV loader — fallback meet source when Supabase is unavailable.

Expected header row (case-insensitive, any order):
    Date,Name,Level,Priority[,Live Results][,Watch]

Quoting is deliberately simple: every double quote toggles quoted mode and is
dropped, so "Boston, MA" stays one field but "" is not an escaped quote.
"""

import logging
from datetime import datetime
from pathlib import Path

from watch_me_run.config import MEETS_CSV_PATH
from watch_me_run.models import Meet, MeetPriority, parse_url, sort_meets
from watch_me_run.services.meet_status import local_zone

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("Date", "Name", "Level", "Priority")
DATE_FORMAT = "%m/%d/%y"  # 11/20/25, 1/5/26


def split_csv_line(line: str) -> list[str]:
    """Split one line on commas outside quotes. Quote characters are removed."""
    fields = []
    current = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            continue
        if char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def parse_meet_date(text: str) -> datetime | None:
    """M/d/yy at local midnight. strptime is locale-independent for numeric fields."""
    try:
        parsed = datetime.strptime(text.strip(), DATE_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=local_zone())


def parse_meets(data: bytes | str) -> list[Meet]:
    """Parse CSV text into meets sorted by (priority, name).

    Malformed input returns []. Rows with bad dates or too few columns are
    skipped.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            logger.warning("Meet CSV is not valid UTF-8")
            return []

    lines = [ln for ln in data.splitlines() if ln.strip()]
    if not lines:
        return []

    headers = [h.strip().casefold() for h in split_csv_line(lines[0])]

    def index(name: str) -> int | None:
        key = name.casefold()
        return headers.index(key) if key in headers else None

    idx = {name: index(name) for name in REQUIRED_HEADERS}
    missing = [name for name, i in idx.items() if i is None]
    if missing:
        logger.warning("Meet CSV missing required headers: %s", ", ".join(missing))
        return []

    live_idx = index("Live Results")
    if live_idx is None:
        live_idx = index("LiveResults")
    watch_idx = index("Watch")

    meets = []
    for line in lines[1:]:
        cols = [c.strip() for c in split_csv_line(line)]
        if len(cols) < len(headers):
            logger.warning("Skipping short meet row: %r", line)
            continue

        date_text = cols[idx["Date"]]
        start = parse_meet_date(date_text)
        if start is None:
            logger.warning("Could not parse meet date: %r", date_text)
            continue

        meets.append(Meet(
            date=start,
            name=cols[idx["Name"]],
            level=cols[idx["Level"]],
            priority=MeetPriority.parse(cols[idx["Priority"]]),
            live_results_url=parse_url(cols[live_idx]) if live_idx is not None else None,
            watch_url=parse_url(cols[watch_idx]) if watch_idx is not None else None,
        ))

    return sort_meets(meets)


def load_meets_csv(path: Path | None = None) -> list[Meet]:
    """Read and parse the bundled meets.csv (or an override path)."""
    csv_path = Path(path) if path else MEETS_CSV_PATH
    try:
        raw = csv_path.read_bytes()
    except OSError as e:
        logger.warning("Could not read %s: %s", csv_path, e)
        return []
    meets = parse_meets(raw)
    logger.info("Loaded %d meets from %s", len(meets), csv_path.name)
    return meets
