"""
Streamlit Frontend for Goal Allocations

The settings page where users decide which share of each account
funds which goal.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Over-allocated rows are highlighted while typing
3. Save is disabled until every row is valid
4. A failed save never loses the user's edits
5. No hidden actions

The UI is a pure consumer of the allocation editor:
- It reads cells and row totals from the matrix
- It writes through set_cell()
- It saves through submit()
"""

import asyncio

import streamlit as st

from goal_allocations.allocation import (
    InvalidPercent,
    SubmissionBlocked,
    SubmissionFailed,
    SubmissionInProgress,
)
from goal_allocations.audit import create_correlation_id
from goal_allocations.orchestrator import (
    AllocationEditor,
    GoalManagementFlow,
    StorageBackends,
    create_app_components,
    create_storage_backends,
)
from goal_allocations.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Goal Allocations",
    page_icon="🎯",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_backends() -> StorageBackends:
    """Storage shared by all sessions (cached)."""
    try:
        return create_storage_backends(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_storage_backends(use_storage=False)


def get_components():
    """One editor and goal flow per browser session."""
    if "components" not in st.session_state:
        st.session_state["components"] = create_app_components(
            backends=get_backends()
        )
    return st.session_state["components"]


def main():
    """Main application entry point."""
    editor, goal_flow, _ = get_components()

    st.sidebar.title("🎯 Goal Allocations")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🎯 Goals", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Pick how much of each account funds each goal
        2. Keep every account at or below 100%
        3. Save all allocations at once
        """
    )

    if page == "🎯 Goals":
        render_goals_page(editor, goal_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_goals_page(editor: AllocationEditor, goal_flow: GoalManagementFlow):
    """Render the goals list and the allocation grid."""
    st.title("🎯 Goals")
    st.markdown("Manage your investment and savings goals.")

    if not editor.is_loaded:
        try:
            run_async(editor.load())
        except StorageError as e:
            st.error(f"Could not load your goals: {e}")
            st.stop()

    goals = run_async(goal_flow.list_goals())
    if not goals:
        st.info("🎯 You don't have any goals yet. Add a goal to start allocating.")
        return

    st.subheader("Goals")
    for goal in goals:
        col1, col2 = st.columns([5, 1])
        with col1:
            badge = " ✅" if goal.is_achieved else ""
            st.markdown(f"**{goal.title}**{badge} · target {goal.target_amount:,.2f}")
            if goal.description:
                st.caption(goal.description)
        with col2:
            if st.session_state.get("confirm_delete") != goal.id:
                if st.button("🗑️ Delete", key=f"delete-{goal.id}"):
                    st.session_state["confirm_delete"] = goal.id
                    st.rerun()
                continue

            st.warning(
                "Delete this goal? Its allocations will be removed as well. "
                "This cannot be undone."
            )
            if st.button("Confirm delete", key=f"confirm-delete-{goal.id}", type="primary"):
                st.session_state.pop("confirm_delete", None)
                try:
                    run_async(goal_flow.delete_goal(goal.id))
                    st.success("Goal deleted successfully.")
                    st.rerun()
                except StorageError as e:
                    st.error(f"Failed to delete goal: {e}")
            if st.button("Cancel", key=f"cancel-delete-{goal.id}"):
                st.session_state.pop("confirm_delete", None)
                st.rerun()

    st.markdown("---")
    render_allocation_grid(editor)


def render_allocation_grid(editor: AllocationEditor):
    """One row per account, one column per goal, cells in percent."""
    st.subheader("Allocations")
    st.caption("Set the percentage of each account that goes to each goal.")

    matrix = editor.matrix
    limit = editor.validator.max_row_total + editor.validator.tolerance

    header = st.columns([2] + [1] * len(matrix.goals) + [1])
    header[0].markdown("**Account**")
    for col, goal in zip(header[1:], matrix.goals):
        col.markdown(f"**{goal.title}**")
    header[-1].markdown("**Total**")

    for account in matrix.accounts:
        cols = st.columns([2] + [1] * len(matrix.goals) + [1])
        label = account.name if account.is_active else f"{account.name} (inactive)"
        cols[0].markdown(f"{label}  \n`{account.currency}`")

        for col, goal in zip(cols[1:], matrix.goals):
            value = col.number_input(
                f"{account.name} → {goal.title}",
                min_value=0.0,
                max_value=100.0,
                step=1.0,
                value=matrix.get_cell(account.id, goal.id),
                key=f"cell-{account.id}-{goal.id}",
                label_visibility="collapsed",
            )
            if value != matrix.get_cell(account.id, goal.id):
                try:
                    editor.set_cell(account.id, goal.id, value)
                except InvalidPercent as e:
                    col.error(str(e))

        total = matrix.row_sum(account.id)
        if total > limit:
            cols[-1].markdown(f"🔴 **{total:g}%**")
        else:
            cols[-1].markdown(f"{total:g}%")

    result = editor.validate()
    summary = editor.validator.get_user_friendly_summary(result)
    if result.is_valid and not result.warnings:
        st.success(summary)
    elif result.is_valid:
        st.warning(summary)
    else:
        st.error(summary)

    col1, col2 = st.columns([2, 1])
    with col1:
        save_clicked = st.button(
            "💾 Save Allocations",
            type="primary",
            disabled=not result.is_valid or editor.is_submitting,
        )
    with col2:
        if st.button("↩️ Discard Changes", disabled=not editor.is_dirty):
            run_async(editor.reset())
            clear_cell_widgets()
            st.rerun()

    if save_clicked:
        correlation_id = create_correlation_id()
        with st.spinner("Saving allocations..."):
            try:
                saved = run_async(editor.submit(correlation_id=correlation_id))
                st.success(
                    f"Allocations saved successfully "
                    f"({saved.changes.change_count} changes)."
                )
            except SubmissionBlocked as e:
                st.error(editor.validator.get_user_friendly_summary(e.result))
            except SubmissionInProgress:
                st.warning("A save is already in progress.")
            except SubmissionFailed as e:
                st.error(f"{e} Your edits are still here; please try again.")


def clear_cell_widgets():
    """Drop cached grid inputs so they re-read the matrix."""
    for key in [k for k in st.session_state if str(k).startswith("cell-")]:
        del st.session_state[key]


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from goal_allocations.config import validate_all_settings

    status = validate_all_settings()

    sections = [
        ("Allocation rules", "allocation"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
