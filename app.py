"""Game Dev Clicker (Streamlit)

UI/Experience

Principles:
- UI only renders + triggers.
- Core domain and engine are pure Python modules.
- One GameSession per browser session, kept in st.session_state; game time
  advances by the wall-clock delta between reruns.

Entry point: streamlit run app.py
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict

import streamlit as st

from core.formatting import format_currency, format_duration, format_number, format_rate
from engine.config import EngineConfig
from engine.session import GameSession

APP_TITLE = "Game Dev Clicker"
APP_SUBTITLE = "Click to write code, level up, unlock money, ship projects."
APP_VERSION = "1.0.0"

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title=APP_TITLE, page_icon="🎮", layout="wide", initial_sidebar_state="expanded")

CSS = """
<style>
.block-container {padding-top: 3.2rem; padding-bottom: 2rem;}
.card {
  border: 1px solid rgba(255,255,255,0.08);
  border-radius: 16px;
  padding: 14px 16px;
  background: rgba(255,255,255,0.03);
}
.pill {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(255,255,255,0.12);
  font-size: 12px;
  opacity: .85;
}
.pill.ok {border-color: rgba(120,255,160,0.25);}
.pill.bad {border-color: rgba(255,120,120,0.25);}
.small {font-size: 13px; opacity:.75;}
</style>
"""

st.markdown(CSS, unsafe_allow_html=True)

CATEGORY_LABELS = {"skills": "Skills", "equipment": "Equipment", "team": "Team"}


# =========================
# Session state
# =========================


def _ensure_state() -> None:
    ss = st.session_state
    if "game" not in ss:
        ss.game = GameSession.from_config(EngineConfig.from_env())
    if "last_tick" not in ss:
        ss.last_tick = time.monotonic()
    if "shown_notifications" not in ss:
        ss.shown_notifications = 0


def _advance_time() -> None:
    """Feed the wall-clock delta since the previous rerun into the session."""
    ss = st.session_state
    now = time.monotonic()
    delta = max(0.0, now - float(ss.last_tick))
    ss.last_tick = now
    ss.game.tick(delta)


def _flush_notifications() -> None:
    ss = st.session_state
    game: GameSession = ss.game
    for title, message in game.notifications_since(ss.shown_notifications):
        st.toast(f"**{title}**  \n{message}")
    ss.shown_notifications = game.notification_seq


# =========================
# Pages
# =========================


def page_play() -> None:
    game: GameSession = st.session_state.game
    s = game.state
    snap = game.snapshot()

    st.title(APP_TITLE)
    st.caption(APP_SUBTITLE)

    a, b, c, d = st.columns(4)
    a.metric("Money", format_currency(s.money) if snap["money_unlocked"] else "Locked")
    b.metric("Experience", format_number(s.experience), help=f"Spendable: {format_number(snap['available_experience'])}")
    c.metric("Level", s.player_level, help=f"{format_number(snap['experience_to_next_level'])} exp to next level")
    d.metric("Stage", s.current_stage, help=f"Money x{snap['stage_money_multiplier']:.1f}")
    st.progress(float(snap["level_progress"]), text=f"Level {s.player_level + 1} in {format_number(snap['experience_to_next_level'])} exp")

    left, right = st.columns([1.0, 1.2])
    with left:
        st.markdown("<div class='card'>", unsafe_allow_html=True)
        st.markdown(
            f"**Per click:** {format_number(game.progression.exp_gain_per_click())} exp"
            + (f" · {format_currency(game.progression.money_gain_per_click())}" if snap["money_unlocked"] else "")
        )
        st.markdown(
            f"**Auto:** {format_rate(s.auto_exp)} exp"
            + (f" · {format_rate(s.auto_money)} money" if snap["money_unlocked"] else "")
        )
        st.markdown(f"<span class='small'>Critical chance {snap['critical_chance'] * 100:.1f}%</span>", unsafe_allow_html=True)
        st.markdown("</div>", unsafe_allow_html=True)
        st.write("")
        if st.button("💻 Write code", use_container_width=True, type="primary"):
            res = game.click()
            if res.critical:
                st.toast("Critical click!")
            st.rerun()

        nxt = snap["next_stage_threshold"]
        if nxt is not None:
            st.caption(f"Next stage at {format_number(nxt)} total experience")

    with right:
        proj = snap["project"]
        st.subheader("Project")
        if proj is None:
            st.info(game.unlocks.describe_progress("project_system") or "Projects are locked.")
        else:
            st.markdown(f"**{proj['name']}** <span class='pill'>{proj['difficulty']}</span>", unsafe_allow_html=True)
            frac = proj["progress"] / proj["requirement"] if proj["requirement"] > 0 else 0.0
            st.progress(min(1.0, frac), text=f"{format_number(proj['progress'])} / {format_number(proj['requirement'])}")
            eta = game.projects.estimated_seconds_remaining(s.auto_exp * s.multiplier("exp") * s.multiplier("all"))
            st.caption(
                f"Reward {format_currency(proj['reward'])}"
                + (f" · ~{format_duration(eta)} on auto" if eta != float("inf") else "")
            )

    st.markdown("---")
    page_shop(game)


def page_shop(game: GameSession) -> None:
    st.subheader("Upgrades")
    tabs = st.tabs([CATEGORY_LABELS[k] for k in CATEGORY_LABELS])
    for tab, cat in zip(tabs, CATEGORY_LABELS):
        with tab:
            items = game.shop.available(cat)
            if not items:
                st.caption("Nothing available yet.")
                continue
            for u in items:
                cost = game.shop.cost(u)
                level = game.shop.level_of(u.id)
                unit = format_currency(cost) if u.currency == "money" else f"{format_number(cost)} exp"
                col1, col2 = st.columns([3.0, 1.0])
                with col1:
                    cap = "∞" if u.unlimited else str(u.max_level)
                    st.markdown(f"**{u.name}** <span class='pill'>Lv {level}/{cap}</span>", unsafe_allow_html=True)
                    st.caption(u.description)
                with col2:
                    if st.button(unit, key=f"buy_{u.id}", disabled=not game.shop.can_afford(u), use_container_width=True):
                        game.buy(u.id)
                        st.rerun()


def page_stats() -> None:
    game: GameSession = st.session_state.game
    s = game.state
    st.title("Statistics")

    rows = {
        "Total clicks": format_number(s.total_clicks),
        "Money earned": format_currency(s.total_money_earned),
        "Experience earned": format_number(s.total_experience_earned),
        "Auto income": format_number(s.total_auto_income),
        "Projects completed": format_number(s.total_projects_completed),
        "Upgrades purchased": format_number(s.total_upgrades_purchased),
        "Play time": format_duration(s.total_play_time),
        "Saves": str(s.save_count),
    }
    for k, v in rows.items():
        st.markdown(f"**{k}:** {v}")

    st.subheader("Records")
    stats = game.stats
    a, b, c, d = st.columns(4)
    a.metric("Highest level", s.highest_level)
    b.metric("Highest stage", s.highest_stage)
    c.metric("Milestones", s.milestones_reached)
    d.metric("Day streak", s.consecutive_days_played, help=f"{s.total_days_played} days played")
    st.caption(
        f"Most money held {format_currency(s.highest_money)} · "
        f"{stats.clicks_per_minute():.1f} clicks/min · "
        f"this session: {format_number(stats.session.clicks)} clicks, "
        f"{format_number(stats.session.experience_earned)} exp in {format_duration(stats.session.seconds)}"
    )

    st.subheader("Achievements")
    ach = game.achievements
    st.progress(
        ach.completion() / 100.0,
        text=f"{len(ach.unlocked())}/{len(game.balance.achievements)} unlocked · {ach.total_points()} points",
    )
    for item in game.balance.achievements:
        ok = ach.is_unlocked(item.id)
        pill = "ok" if ok else "bad"
        progress = "" if ok or item.kind == "feature" else f" ({format_number(ach.progress_value(item))}/{format_number(item.target)})"
        st.markdown(
            f"<span class='pill {pill}'>{item.rarity}</span> **{item.name}** "
            f"<span class='small'>{item.description}{progress} · {ach.describe_reward(item)}</span>",
            unsafe_allow_html=True,
        )

    st.subheader("Features")
    for rule in game.balance.unlock_rules:
        ok = s.is_unlocked(rule.feature)
        pill = "ok" if ok else "bad"
        st.markdown(
            f"<span class='pill {pill}'>{'unlocked' if ok else 'locked'}</span> **{rule.title}** "
            f"<span class='small'>{game.unlocks.describe_progress(rule.feature)}</span>",
            unsafe_allow_html=True,
        )

    if game.offline_report is not None:
        st.subheader("Last offline report")
        st.json(game.offline_report.to_dict())


def page_debug() -> None:
    game: GameSession = st.session_state.game
    st.title("Debug")

    st.subheader("EngineConfig")
    st.json({k: getattr(game.config, k) for k in game.config.__dataclass_fields__})

    st.subheader("Snapshot")
    st.json(game.snapshot())

    st.subheader("Notifications")
    st.json([{"title": t, "message": m} for t, m in game.notifications])


# =========================
# Sidebar
# =========================


def export_import_controls() -> None:
    ss = st.session_state
    game: GameSession = ss.game
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Save Export / Import")

    export_payload: Dict[str, Any] = {
        "meta": {"app": APP_TITLE, "version": APP_VERSION, "exported_at": datetime.utcnow().isoformat() + "Z"},
        "game_state": game.snapshot().get("state"),
    }
    st.sidebar.download_button(
        "Download save",
        data=json.dumps(export_payload, ensure_ascii=False, indent=2).encode("utf-8"),
        file_name="gamedev_clicker_save.json",
        mime="application/json",
    )

    up = st.sidebar.file_uploader("Upload save", type=["json"], accept_multiple_files=False)
    # the uploader hands the same file back on every rerun; import it once
    if up is not None and up.file_id != game.imported_source:
        try:
            data = json.loads(up.getvalue().decode("utf-8"))
            if game.import_save(data, source_id=up.file_id):
                ss.shown_notifications = game.notification_seq
                st.sidebar.success("Save loaded.")
        except (ValueError, TypeError, OverflowError) as e:
            st.sidebar.error(f"Import failed: {e}")


def sidebar() -> str:
    ss = st.session_state
    game: GameSession = ss.game

    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.markdown(f"v{APP_VERSION}")
    st.sidebar.markdown("---")

    cols = st.sidebar.columns(3)
    with cols[0]:
        if st.button("Save", use_container_width=True):
            game.save()
            st.sidebar.success("Saved.")
    with cols[1]:
        label = "Resume" if game.paused else "Pause"
        if st.button(label, use_container_width=True):
            if game.paused:
                game.resume()
            else:
                game.pause()
            st.rerun()
    with cols[2]:
        if st.button("Reset", use_container_width=True):
            game.reset()
            st.rerun()

    if st.sidebar.button("Refresh", use_container_width=True):
        st.rerun()

    export_import_controls()

    st.sidebar.markdown("---")
    page = st.sidebar.radio("Page", ["Play", "Stats", "Debug"], index=0)
    return page


# =========================
# Main
# =========================


def main() -> None:
    _ensure_state()
    _advance_time()
    page = sidebar()
    _flush_notifications()

    if page == "Play":
        page_play()
    elif page == "Stats":
        page_stats()
    else:
        page_debug()


if __name__ == "__main__":
    main()
