# apps/review_ui/main.py
import os

import streamlit as st

# --- 1. Page Config ---
st.set_page_config(layout="wide", page_title="Translation QA Console")

from apps.review_ui.adapters import ApiAdapter
from apps.common.settings import load_settings

SETTINGS = load_settings()
CHECKLIST = list(SETTINGS.checklist_items)


@st.cache_resource
def get_adapter(reviewer_id: str, role: str):
    return ApiAdapter(SETTINGS.api_url, reviewer_id=reviewer_id, role=role)


# --- Main App ---
st.title("Translation QA Console")

# Sidebar
st.sidebar.header("Reviewer")
reviewer_id = st.sidebar.text_input("Reviewer id", value=os.getenv("USER", "qa"), key="reviewer_id")
role = st.sidebar.radio("Role", ["qa", "admin"], key="role")
adapter = get_adapter(reviewer_id, role)

if st.sidebar.button("Refresh Queue"):
    st.session_state.pop("current_id", None)
    st.rerun()

# The queue is a live view: re-read on every run.
queue = adapter.get_queue()
st.sidebar.markdown(f"**Queue Size:** {len(queue)}")

if not queue:
    st.info("Review queue is empty.")
    st.stop()

current_id = st.session_state.get("current_id")
card = next((c for c in queue if c.id == current_id), None) or queue[0]
position = [c.id for c in queue].index(card.id) + 1
st.caption(f"Item {position} of {len(queue)} (oldest submission first)")

col_src, col_tgt = st.columns([1, 1])
with col_src:
    st.subheader("Source")
    st.write(card.source_text)
    st.caption(f"Packet {card.packet_id} / unit #{card.sequence_number}")
with col_tgt:
    st.subheader("Translation")
    st.write(card.target_text)
    st.caption(f"Translator: {card.assigned_to}")
    if card.rejection_reason:
        st.warning(f"Previously rejected: {card.rejection_reason}")

with st.form(key=f"review_{card.id}"):
    st.markdown("### Quality checklist")
    checks = {k: st.checkbox(k.replace("_", " ").title(), key=f"{card.id}_{k}") for k in CHECKLIST}
    reason = st.text_area("Rejection reason (required to reject)", height=100)

    col_a, col_r = st.columns([1, 1])
    approve = col_a.form_submit_button("Approve", type="primary")
    reject = col_r.form_submit_button("Reject")

    if approve or reject:
        outcome = adapter.decide(
            card,
            "approve" if approve else "reject",
            checklist=checks,
            reason=reason if reject else None,
        )
        if outcome.error:
            st.error(outcome.error)
        else:
            st.toast(f"{outcome.status} (score={outcome.quality_score})")
            nxt = adapter.next_card(after_id=card.id)
            st.session_state["current_id"] = nxt.id if nxt else None
            st.rerun()
