from __future__ import annotations

"""
vocab_core.py — German vocabulary trainer core

What lives here:
- Weighted selection: items you keep getting wrong come back more often,
  everything else stays in rotation with a floor weight of 1.
- Study items: static vocabulary merged with success/fail counters.
- Eligibility filters, answer checking, daily/all-time tallies.

The selector never mutates items and never touches storage. Counters are
owned by the caller and updated between draws.

This file intentionally does NOT import Streamlit.
"""

import json
import logging
import random
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

logger = logging.getLogger(__name__)


# ============================================================
# Paths
# ============================================================
CONTENT_DIR = Path(__file__).resolve().parent / "content"
VOCAB_FILE = CONTENT_DIR / "vocab.json"


# ============================================================
# Constants / Defaults
# ============================================================
# weight = max(WEIGHT_FLOOR, (fail - success) + offset)
DEFAULT_OFFSET = 3
FALLBACK_OFFSET = 3
OFFSET_MIN = 1
OFFSET_MAX = 10
WEIGHT_FLOOR = 1

DAILY_GOAL = 50

STATUS_STUDY = "study"
STATUS_SKIP = "skip"
STATUSES = (STATUS_STUDY, STATUS_SKIP)

ARTICLES = ("der", "die", "das")

MODE_MULTIPLE_CHOICE = "multiple_choice"
MODE_WRITTEN = "written"
MODE_ARTICLE = "article"
QUIZ_MODES = (MODE_MULTIPLE_CHOICE, MODE_WRITTEN, MODE_ARTICLE)


def set_default_offset(value: Any) -> int:
    global DEFAULT_OFFSET
    try:
        v = int(value)
    except (TypeError, ValueError, OverflowError):
        v = FALLBACK_OFFSET
    DEFAULT_OFFSET = max(OFFSET_MIN, min(OFFSET_MAX, v))
    return DEFAULT_OFFSET


def _resolve_offset(offset: Optional[int]) -> int:
    return DEFAULT_OFFSET if offset is None else int(offset)


# ============================================================
# Errors
# ============================================================
class EmptyPoolError(ValueError):
    """Raised when a weighted draw is asked to pick from zero eligible items."""


# ============================================================
# Helpers
# ============================================================
def today_ymd() -> str:
    return date.today().isoformat()


def safe_load_json(path: Path) -> Any:
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Failed reading {path}: {e}") from e
    try:
        return json.loads(txt)
    except JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path} (line {e.lineno}, col {e.colno}): {e.msg}") from e


def normalize_answer(s: Any) -> str:
    s = unicodedata.normalize("NFC", str(s or "")).lower().strip()
    s = re.sub(r"[^\w\s\-]", "", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def sparkline(values: List[int]) -> str:
    if not values:
        return ""
    blocks = "▁▂▃▄▅▆▇█"
    mx = max(values) if max(values) > 0 else 1
    out: List[str] = []
    for v in values:
        idx = int(round((v / mx) * (len(blocks) - 1)))
        idx = max(0, min(len(blocks) - 1, idx))
        out.append(blocks[idx])
    return "".join(out)


# ============================================================
# Study items
# ============================================================
@dataclass(frozen=True)
class StudyItem:
    identity: str
    success_count: int = 0
    fail_count: int = 0
    payload: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)


ItemLike = Union[StudyItem, Mapping[str, Any], Any]


def _coerce_count(value: Any) -> int:
    if value is None:
        return 0
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, n)


def item_counts(item: ItemLike) -> Tuple[int, int]:
    """
    Returns (success_count, fail_count) for a StudyItem, a mapping or any
    object exposing those attributes. Missing counts read as 0.
    """
    if isinstance(item, Mapping):
        succ = item.get("success_count")
        fail = item.get("fail_count")
    else:
        succ = getattr(item, "success_count", None)
        fail = getattr(item, "fail_count", None)
    return _coerce_count(succ), _coerce_count(fail)


def item_key(entry: Mapping[str, Any]) -> str:
    return f"vocab::{str(entry.get('english', '')).strip()}::{str(entry.get('word', '')).strip()}"


def default_counts_entry() -> Dict[str, Any]:
    return {
        "success_count": 0,
        "fail_count": 0,
        "status": STATUS_STUDY,
    }


def migrate_counts_entry(e: Any) -> Dict[str, Any]:
    base = default_counts_entry()
    if isinstance(e, dict):
        base.update(e)

    base["success_count"] = _coerce_count(base.get("success_count"))
    base["fail_count"] = _coerce_count(base.get("fail_count"))
    status = str(base.get("status", STATUS_STUDY) or STATUS_STUDY).strip().lower()
    base["status"] = status if status in STATUSES else STATUS_STUDY
    return base


def build_study_items(
    vocab: Iterable[Mapping[str, Any]],
    counts: Mapping[str, Any],
) -> List[StudyItem]:
    """
    Merges static vocabulary with the caller's counts store.
    Entries without stored counts start at zero.
    """
    items: List[StudyItem] = []
    for entry in vocab:
        k = item_key(entry)
        c = migrate_counts_entry(counts.get(k))
        payload = dict(entry)
        payload["status"] = c["status"]
        items.append(
            StudyItem(
                identity=k,
                success_count=c["success_count"],
                fail_count=c["fail_count"],
                payload=payload,
            )
        )
    return items


def record_answer(counts: Dict[str, Any], identity: str, correct: bool) -> Dict[str, Any]:
    e = migrate_counts_entry(counts.get(identity))
    if correct:
        e["success_count"] += 1
    else:
        e["fail_count"] += 1
    counts[identity] = e
    return e


def set_status(counts: Dict[str, Any], identity: str, status: str) -> Dict[str, Any]:
    s = str(status or "").strip().lower()
    if s not in STATUSES:
        raise ValueError(f"Unknown status {status!r}. Expected one of {STATUSES}.")
    e = migrate_counts_entry(counts.get(identity))
    e["status"] = s
    counts[identity] = e
    return e


# ============================================================
# Weighted selection
# ============================================================
RandomSource = Union[random.Random, Callable[[], float], None]


def calculate_weight(item: ItemLike, offset: Optional[int] = None) -> int:
    succ, fail = item_counts(item)
    return max(WEIGHT_FLOOR, (fail - succ) + _resolve_offset(offset))


def build_weighted_pool(items: Iterable[ItemLike], offset: Optional[int] = None) -> List[Tuple[ItemLike, int]]:
    off = _resolve_offset(offset)
    return [(it, calculate_weight(it, off)) for it in items]


def _draw_uniform(rng: RandomSource) -> float:
    if rng is None:
        return random.random()
    if hasattr(rng, "random"):
        return float(rng.random())
    return float(rng())


def draw_weighted(
    items: Iterable[ItemLike],
    offset: Optional[int] = None,
    rng: RandomSource = None,
) -> Tuple[ItemLike, int]:
    """
    Returns (item, weight) where item i is picked with probability
    weight(i) / sum(weights).

    Walks the items in the given order and returns the one whose
    cumulative-weight interval contains r = u * total. `rng` may be a
    random.Random, a zero-arg callable returning a float in [0, 1), or None
    for the module-level source.

    Raises EmptyPoolError for an empty input.
    """
    pool = build_weighted_pool(items, offset)
    if not pool:
        raise EmptyPoolError("No eligible items to draw from.")

    total = sum(w for _, w in pool)
    r = _draw_uniform(rng) * total

    for it, w in pool:
        if r < w:
            return it, w
        r -= w

    # u landed on 1.0 or float drift pushed r past the last bucket
    logger.debug("Weighted draw fell through %d buckets (total=%d); using last item", len(pool), total)
    return pool[-1]


def weighted_random_item(
    items: Iterable[ItemLike],
    offset: Optional[int] = None,
    rng: RandomSource = None,
) -> ItemLike:
    return draw_weighted(items, offset, rng)[0]


def selection_probabilities(items: Iterable[ItemLike], offset: Optional[int] = None) -> List[float]:
    pool = build_weighted_pool(items, offset)
    if not pool:
        raise EmptyPoolError("No eligible items to draw from.")
    total = float(sum(w for _, w in pool))
    return [w / total for _, w in pool]


# ============================================================
# Eligibility
# ============================================================
def _field(item: ItemLike, name: str) -> Any:
    if isinstance(item, (StudyItem, Mapping)):
        return item.get(name)
    return getattr(item, name, None)


def pass_filters(
    item: ItemLike,
    level_filter: Optional[Set[str]],
    type_filter: Optional[Set[str]],
    include_skipped: bool = False,
) -> bool:
    if level_filter is not None and _field(item, "level") not in level_filter:
        return False
    if type_filter is not None and _field(item, "type") not in type_filter:
        return False
    if not include_skipped and _field(item, "status") == STATUS_SKIP:
        return False
    return True


def eligible_items(
    items: Iterable[ItemLike],
    level_filter: Optional[Set[str]] = None,
    type_filter: Optional[Set[str]] = None,
    include_skipped: bool = False,
) -> List[ItemLike]:
    pool = [it for it in items if pass_filters(it, level_filter, type_filter, include_skipped)]
    logger.debug("Eligible pool: %d items", len(pool))
    return pool


def browse_items(
    items: Iterable[ItemLike],
    query: str = "",
    level: str = "",
    status: str = "all",
) -> List[ItemLike]:
    """
    Word-list view: substring search over word and english, optional level,
    status "all" / "study" / "skip". Skipped items are always browsable.
    """
    q = normalize_answer(query)
    st = str(status or "all").strip().lower()
    out: List[ItemLike] = []
    for it in items:
        if level and _field(it, "level") != level:
            continue
        is_skipped = _field(it, "status") == STATUS_SKIP
        if st == STATUS_SKIP and not is_skipped:
            continue
        if st == STATUS_STUDY and is_skipped:
            continue
        if q and q not in normalize_answer(_field(it, "word")) and q not in normalize_answer(_field(it, "english")):
            continue
        out.append(it)
    return out


# ============================================================
# Answer checking
# ============================================================
def check_answer(expected: Any, given: Any) -> bool:
    exp = normalize_answer(expected)
    return bool(exp) and normalize_answer(given) == exp


def article_for(entry: Any) -> str:
    a = str(_field(entry, "article") or "").strip().lower()
    return a if a in ARTICLES else ""


def check_article(entry: Any, given: Any) -> bool:
    a = article_for(entry)
    return bool(a) and normalize_answer(given) == a


def available_modes(entry: Any, selected_modes: Sequence[str]) -> List[str]:
    modes = [m for m in selected_modes if m in QUIZ_MODES]
    if not article_for(entry):
        modes = [m for m in modes if m != MODE_ARTICLE]
    return modes or [MODE_MULTIPLE_CHOICE]


def pick_distractors(
    vocab: Sequence[Any],
    correct_entry: Any,
    k: int = 3,
    rng: Optional[random.Random] = None,
) -> List[str]:
    rnd = rng or random
    correct = normalize_answer(_field(correct_entry, "word"))
    words: List[str] = []
    seen: Set[str] = {correct}
    for v in vocab:
        w = str(_field(v, "word") or "").strip()
        nw = normalize_answer(w)
        if not w or nw in seen:
            continue
        seen.add(nw)
        words.append(w)
    rnd.shuffle(words)
    return words[:k]


def build_choices(
    vocab: Sequence[Any],
    correct_entry: Any,
    k: int = 3,
    rng: Optional[random.Random] = None,
) -> List[str]:
    rnd = rng or random
    choices = [str(_field(correct_entry, "word") or "")] + pick_distractors(vocab, correct_entry, k, rng=rnd)
    rnd.shuffle(choices)
    return choices


# ============================================================
# Tallies
# ============================================================
def default_tally() -> Dict[str, int]:
    return {"total": 0, "correct": 0, "incorrect": 0}


def bump_tally(tally: Dict[str, int], correct: bool) -> Dict[str, int]:
    tally["total"] = int(tally.get("total", 0)) + 1
    if correct:
        tally["correct"] = int(tally.get("correct", 0)) + 1
    else:
        tally["incorrect"] = int(tally.get("incorrect", 0)) + 1
    return tally


def accuracy(tally: Mapping[str, Any]) -> float:
    total = int(tally.get("total", 0))
    if total <= 0:
        return 0.0
    return int(tally.get("correct", 0)) / total * 100.0


def update_daily_tally(daily: Dict[str, Any], correct: bool, day: Optional[str] = None) -> Dict[str, int]:
    d = day or today_ymd()
    days = daily.setdefault("days", {})
    return bump_tally(days.setdefault(d, default_tally()), correct)


def recent_days(daily: Mapping[str, Any], n: int = 14) -> List[Tuple[str, Dict[str, int]]]:
    days = daily.get("days", {}) or {}
    keys = sorted(days.keys())[-n:]
    return [(k, days[k]) for k in keys]


# ============================================================
# Content loading
# ============================================================
_ARTICLE_PREFIX = re.compile(r"^(der|die|das)\s+", re.IGNORECASE)


def load_vocab(path: Path = VOCAB_FILE) -> List[Dict[str, Any]]:
    """
    Loads the bundled vocabulary list.

    Each entry: {word, english?, type?, article?, level?, plural?, sentence?, trivia?}
    A leading der/die/das in `word` is split into `article` unless the
    entry is a phrase.
    """
    if not path.exists():
        raise ValueError(f"Missing vocabulary file: {path}")

    data = safe_load_json(path)
    if isinstance(data, dict) and isinstance(data.get("words"), list):
        data = data["words"]
    if not isinstance(data, list):
        raise ValueError(f"{path.name} must be a list of entries.")

    vocab: List[Dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        word = str(item.get("word", "") or "").strip()
        if not word:
            continue

        vtype = str(item.get("type", "") or "").strip()
        if vtype:
            vtype = vtype[:1].upper() + vtype[1:].lower()

        article = str(item.get("article", "") or "").strip().lower()
        m = _ARTICLE_PREFIX.match(word)
        if m and vtype != "Phrase":
            if not article:
                article = m.group(1).lower()
            word = _ARTICLE_PREFIX.sub("", word).strip()

        vocab.append(
            {
                "word": word,
                "english": str(item.get("english", "") or "").strip(),
                "type": vtype,
                "article": article if article in ARTICLES else "",
                "level": str(item.get("level", "") or "").strip(),
                "plural": str(item.get("plural", "") or "").strip(),
                "sentence": str(item.get("sentence", "") or "").strip(),
                "trivia": str(item.get("trivia", "") or "").strip(),
            }
        )

    logger.info("Loaded %d vocabulary entries from %s", len(vocab), path)
    return vocab
