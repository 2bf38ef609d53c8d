from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

import streamlit as st

import vocab_core as core

logger = logging.getLogger(__name__)


# ============================================================
# Loading (cached content; mutable counters not cached)
# ============================================================
@st.cache_data(show_spinner=False)
def load_content_cached():
    vocab = core.load_vocab()
    levels = sorted({v["level"] for v in vocab if v.get("level")})
    types = sorted({v["type"] for v in vocab if v.get("type")})
    return vocab, levels, types


# ============================================================
# State
# ============================================================
def ensure_state():
    if st.session_state.get("initialized"):
        return

    vocab, levels, types = load_content_cached()

    st.session_state.initialized = True

    # content
    st.session_state.vocab = vocab
    st.session_state.levels = levels
    st.session_state.types = types

    # mutable (session only)
    st.session_state.counts = {}  # type: Dict[str, Dict[str, Any]]
    st.session_state.daily = {"days": {}}
    st.session_state.all_time = core.default_tally()
    st.session_state.session_tally = core.default_tally()

    # filters + knobs (widget keys)
    st.session_state.level_filter = list(levels)
    st.session_state.type_filter = list(types)
    st.session_state.quiz_modes = list(core.QUIZ_MODES)
    st.session_state.include_skipped = False
    st.session_state.offset = core.DEFAULT_OFFSET

    # current item
    st.session_state.current_item = None
    st.session_state.current_weight = 0
    st.session_state.current_chance = 0.0
    st.session_state.current_mode = ""
    st.session_state.current_choices = []
    st.session_state.question_nonce = 0

    # answer/feedback
    st.session_state.answered = False
    st.session_state.last_was_correct = None  # Optional[bool]
    st.session_state.last_given = ""
    st.session_state.feedback_banner = ""

    pick_next_item()


def reset_answer_state():
    st.session_state.answered = False
    st.session_state.last_was_correct = None
    st.session_state.last_given = ""
    st.session_state.feedback_banner = ""
    st.session_state.current_choices = []
    st.session_state.question_nonce = int(st.session_state.get("question_nonce", 0)) + 1


def current_pool() -> List[core.StudyItem]:
    items = core.build_study_items(st.session_state.vocab, st.session_state.counts)
    return core.eligible_items(
        items,
        set(st.session_state.level_filter),
        set(st.session_state.type_filter),
        include_skipped=bool(st.session_state.include_skipped),
    )


def pick_next_item():
    reset_answer_state()

    offset = int(st.session_state.offset)
    pool = current_pool()

    try:
        it, weight = core.draw_weighted(pool, offset=offset)
    except core.EmptyPoolError:
        st.session_state.current_item = None
        st.session_state.current_mode = ""
        st.session_state.feedback_banner = "No words match your filters. Widen levels/types or include skipped words."
        return

    probs = core.selection_probabilities(pool, offset=offset)
    chance = next((p for x, p in zip(pool, probs) if x.identity == it.identity), 0.0)

    mode = random.choice(core.available_modes(it, st.session_state.quiz_modes))
    if mode == core.MODE_MULTIPLE_CHOICE:
        st.session_state.current_choices = core.build_choices(st.session_state.vocab, it)

    st.session_state.current_item = it
    st.session_state.current_weight = weight
    st.session_state.current_chance = chance
    st.session_state.current_mode = mode


# ============================================================
# Grading + Feedback
# ============================================================
def after_answer(got_right: bool, given: str):
    it: Optional[core.StudyItem] = st.session_state.current_item
    if it is None:
        return

    core.record_answer(st.session_state.counts, it.identity, got_right)
    core.bump_tally(st.session_state.session_tally, got_right)
    core.bump_tally(st.session_state.all_time, got_right)
    core.update_daily_tally(st.session_state.daily, got_right)

    st.session_state.answered = True
    st.session_state.last_was_correct = bool(got_right)
    st.session_state.last_given = given
    logger.info("Answered %s: %s", it.identity, "correct" if got_right else "wrong")


def skip_current():
    it = st.session_state.current_item
    if it is None:
        return
    core.set_status(st.session_state.counts, it.identity, core.STATUS_SKIP)
    pick_next_item()
    if st.session_state.current_item is not None:
        st.session_state.feedback_banner = f"⏭️ '{it.get('word')}' will no longer be asked."


def show_feedback_block(it: core.StudyItem):
    if not st.session_state.answered:
        return

    solution = it.get("word", "")
    if st.session_state.current_mode == core.MODE_ARTICLE:
        solution = f"{core.article_for(it)} {solution}"

    if st.session_state.last_was_correct:
        st.success(f"✅ Richtig! {solution}")
    else:
        st.error(f"❌ Falsch. You answered '{st.session_state.last_given}'. Correct: {solution}")

    extras = []
    if it.get("plural"):
        extras.append(f"Plural: {it.get('plural')}")
    if it.get("sentence"):
        extras.append(f"Beispiel: {it.get('sentence')}")
    if extras:
        st.caption(" | ".join(extras))
    if it.get("trivia"):
        st.info(f"💡 {it.get('trivia')}")


# ============================================================
# Quiz widgets
# ============================================================
def render_multiple_choice(it: core.StudyItem, nonce: int):
    st.subheader(f"Which word means “{it.get('english')}”?")
    pick = st.radio(
        "Choose:",
        st.session_state.current_choices,
        index=None,
        key=f"mc_pick::{nonce}",
        disabled=st.session_state.answered,
    )
    if st.button("Submit", key=f"submit::{nonce}", disabled=st.session_state.answered or pick is None):
        after_answer(core.check_answer(it.get("word"), pick), str(pick))
        st.rerun()


def render_written(it: core.StudyItem, nonce: int):
    st.subheader(f"Type the German for “{it.get('english')}”")
    typed = st.text_input("Your answer:", key=f"typed::{nonce}", disabled=st.session_state.answered)
    if st.button("Submit", key=f"submit::{nonce}", disabled=st.session_state.answered):
        after_answer(core.check_answer(it.get("word"), typed), typed)
        st.rerun()


def render_article(it: core.StudyItem, nonce: int):
    st.subheader(f"Der, die oder das? … {it.get('word')}")
    pick = st.radio(
        "Article:",
        list(core.ARTICLES),
        index=None,
        horizontal=True,
        key=f"article_pick::{nonce}",
        disabled=st.session_state.answered,
    )
    if st.button("Submit", key=f"submit::{nonce}", disabled=st.session_state.answered or pick is None):
        after_answer(core.check_article(it, pick), str(pick))
        st.rerun()


def meta_line(it: core.StudyItem) -> str:
    bits = [b for b in (it.get("level"), it.get("type")) if b]
    bits.append(f"✓ {it.success_count} / ✗ {it.fail_count}")
    bits.append(f"weight {st.session_state.current_weight} ({st.session_state.current_chance * 100:.1f}% chance)")
    return " | ".join(bits)


# ============================================================
# Word list
# ============================================================
def toggle_status(identity: str, word: str, skipped: bool):
    status = core.STATUS_STUDY if skipped else core.STATUS_SKIP
    core.set_status(st.session_state.counts, identity, status)
    logger.info("Status of %s set to %s", identity, status)
    st.session_state.browse_banner = (
        f"📚 '{word}' is back in study." if skipped else f"⏭️ '{word}' will no longer be asked."
    )


def render_word_list():
    offset = int(st.session_state.offset)
    items = core.build_study_items(st.session_state.vocab, st.session_state.counts)

    c1, c2, c3 = st.columns([3, 2, 3])
    with c1:
        query = st.text_input("Search word or English", key="browse_query")
    with c2:
        level = st.selectbox(
            "Level",
            [""] + list(st.session_state.levels),
            key="browse_level",
            format_func=lambda lv: lv or "All levels",
        )
    with c3:
        status = st.radio(
            "Show",
            ["all", core.STATUS_STUDY, core.STATUS_SKIP],
            key="browse_status",
            horizontal=True,
            format_func=str.title,
        )

    shown = core.browse_items(items, query=query, level=level, status=status)
    skipped_total = sum(1 for it in items if it.get("status") == core.STATUS_SKIP)
    st.caption(f"{len(shown)} of {len(items)} words | {skipped_total} skipped | offset {offset}")

    if st.session_state.get("browse_banner"):
        st.success(st.session_state.browse_banner)

    for it in shown:
        skipped = it.get("status") == core.STATUS_SKIP
        article = core.article_for(it)
        word = f"{article} {it.get('word')}".strip()
        left, right = st.columns([5, 1])
        with left:
            st.markdown(
                f"{'~~' if skipped else ''}**{word}**{'~~' if skipped else ''}: {it.get('english')}  \n"
                f"{it.get('level') or '–'} · {it.get('type') or '–'} · "
                f"✓ {it.success_count} / ✗ {it.fail_count} · weight {core.calculate_weight(it, offset)}"
            )
        with right:
            if st.button("Study" if skipped else "Skip", key=f"toggle::{it.identity}"):
                toggle_status(it.identity, str(it.get("word")), skipped)
                st.rerun()


# ============================================================
# Main
# ============================================================
def render_quiz():
    b1, b2 = st.columns(2)
    with b1:
        if st.button("Next", key="next_btn", type="primary"):
            pick_next_item()
    with b2:
        if st.button("Skip word", key="skip_btn", disabled=st.session_state.current_item is None):
            skip_current()

    it = st.session_state.current_item
    if it is None:
        st.warning(st.session_state.feedback_banner or "No word selected. Adjust filters and press Next.")
        return

    if st.session_state.feedback_banner:
        st.success(st.session_state.feedback_banner)

    st.caption(meta_line(it))

    nonce = int(st.session_state.question_nonce)
    mode = st.session_state.current_mode
    if mode == core.MODE_WRITTEN:
        render_written(it, nonce)
    elif mode == core.MODE_ARTICLE:
        render_article(it, nonce)
    else:
        render_multiple_choice(it, nonce)

    show_feedback_block(it)


def main():
    st.set_page_config(page_title="Deutsch Vokabeltrainer", layout="centered")
    logging.basicConfig(level=logging.INFO)
    ensure_state()

    st.title("Deutsch Vokabeltrainer")

    # Sidebar
    with st.sidebar:
        st.header("Filters")
        st.multiselect("Levels", st.session_state.levels, key="level_filter")
        st.multiselect("Word types", st.session_state.types, key="type_filter")
        st.checkbox("Include skipped words", key="include_skipped")

        st.divider()

        st.header("Quiz")
        st.multiselect(
            "Modes",
            list(core.QUIZ_MODES),
            key="quiz_modes",
            format_func=lambda m: m.replace("_", " ").title(),
        )
        st.slider(
            "Focus on mistakes (offset)",
            core.OFFSET_MIN,
            core.OFFSET_MAX,
            key="offset",
            help="Lower values repeat missed words more often; higher values mix more evenly.",
        )

    # Tallies
    today = st.session_state.daily.get("days", {}).get(core.today_ymd(), core.default_tally())
    sess = st.session_state.session_tally
    allt = st.session_state.all_time
    trend = core.sparkline([int(d.get("total", 0)) for _, d in core.recent_days(st.session_state.daily)])
    st.info(
        f"Session: {sess['total']} | Acc {core.accuracy(sess):.0f}% "
        f"| Today: {today['total']}/{core.DAILY_GOAL} | All time: {allt['correct']}/{allt['total']} right "
        f"| {trend}"
    )

    quiz_tab, words_tab = st.tabs(["Quiz", "All words"])
    with quiz_tab:
        render_quiz()
    with words_tab:
        render_word_list()


if __name__ == "__main__":
    main()
