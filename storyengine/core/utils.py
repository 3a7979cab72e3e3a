import re
import time
from typing import Iterable, Optional

from .models import HistoryEntry

# ——— JSON extraction ——————————————————————————————————————

_FENCE = re.compile(r"```(?:json)?\s*", flags=re.IGNORECASE)

def extract_json(raw: str) -> str:
    """
    Strip markdown fences and conversational preamble, returning the
    outermost {...} block (or the cleaned text when there is none).
    """
    cleaned = _FENCE.sub("", (raw or "").strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        return cleaned[start:end + 1]
    return cleaned

# ——— Prompt helpers —————————————————————————————————————————

def format_history(history: Iterable[HistoryEntry]) -> str:
    """
    Render the story so far as numbered paragraph / choice pairs.
    """
    lines = []
    for i, entry in enumerate(history, start=1):
        lines.append(f"Part {i}: {entry.narrative_text.strip()}")
        lines.append(f"Choice made: {entry.choice_made}")
    return "\n".join(lines)

def clip(text: str, max_chars: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= max_chars else text[:max_chars].rstrip() + "…"

# ——— IDs ——————————————————————————————————————————————————————

def next_step_id(previous: Optional[int] = None) -> int:
    """Time-based id, bumped so ids keep increasing within a session."""
    now = time.time_ns()
    if previous is not None and now <= previous:
        return previous + 1
    return now
