"""HeartCoach - Streamlit front end.

Students sign in with a name and a four-digit password, journal with the
coach for a fixed number of turns and can reread earlier conversations.
The teacher unlocks a separate view with the class mood dashboard, student
password resets and the teacher password.

Run with: streamlit run streamlit-app/app.py
"""

import streamlit as st

from heartcoach.auth import AuthService, delete_api_key, get_api_key, save_api_key
from heartcoach.coach import CoachGateway
from heartcoach.config import Settings
from heartcoach.conversation import ConversationSession, ConversationState, get_history
from heartcoach.dashboard import MoodDashboard
from heartcoach.database import Repository
from heartcoach.database.models import Conversation, FinalSummary, MoodQuadrant
from heartcoach.errors import HeartCoachError
from heartcoach.session_manager import SessionManager

QUADRANT_COLORS = {
    MoodQuadrant.YELLOW: "#fde047",
    MoodQuadrant.RED: "#f87171",
    MoodQuadrant.BLUE: "#60a5fa",
    MoodQuadrant.GREEN: "#4ade80",
}

st.set_page_config(page_title="HeartCoach", page_icon="💛", layout="centered")


@st.cache_resource
def get_settings() -> Settings:
    return Settings.from_env()


@st.cache_resource
def get_repository() -> Repository:
    return Repository(get_settings().database_path)


def get_auth() -> AuthService:
    """AuthService bound to this browser session's SessionManager."""
    return AuthService(get_repository(), st.session_state.sessions)


def get_coach() -> CoachGateway:
    return CoachGateway(get_repository(), get_settings())


def init_session_state() -> None:
    """Initialize session state keys.

    Session State Keys:
        sessions: SessionManager with the signed-in student and teacher flag
        role: None, "student" or "teacher"
        student_view: "home", "chat" or "history"
        conversation: the in-progress ConversationSession, if any
        selected_conversation: id of the conversation opened in history
        dashboard: mood buckets computed for the unlocked teacher view
    """
    defaults = {
        "sessions": SessionManager(get_settings().session_timeout_minutes),
        "role": None,
        "student_view": "home",
        "conversation": None,
        "selected_conversation": None,
        "dashboard": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def render_summary_card(summary: FinalSummary) -> None:
    st.markdown("#### Today's conversation summary")
    st.info(f"**Today's mood:** {summary.mood}\n\n*\"{summary.message}\"*")


def render_messages(conversation_messages) -> None:
    for message in conversation_messages:
        with st.chat_message("user" if message.sender == "user" else "assistant"):
            st.markdown(message.text)


# ==================== API KEY ====================


def render_api_key_sidebar() -> None:
    repo = get_repository()
    with st.sidebar:
        st.markdown("### AI coach setup")
        if get_api_key(repo):
            st.success("API key configured")
            if st.button("Remove API key", use_container_width=True):
                delete_api_key(repo)
                st.rerun()
            return

        with st.form("api_key_form"):
            key = st.text_input("Anthropic API key", type="password")
            if st.form_submit_button("Save key", use_container_width=True):
                with st.spinner("Checking key..."):
                    valid = get_coach().validate_credential(key)
                if valid:
                    save_api_key(repo, key)
                    st.rerun()
                else:
                    st.error("That key was not accepted. Please check it and try again.")


# ==================== STUDENT ====================


def render_student_auth() -> None:
    login_tab, signup_tab = st.tabs(["Log in", "Sign up"])

    with login_tab, st.form("login_form"):
        name = st.text_input("Name", key="login_name")
        password = st.text_input("Password (4 digits)", type="password", max_chars=4, key="login_pw")
        if st.form_submit_button("Log in", use_container_width=True):
            try:
                get_auth().login(name, password)
                st.rerun()
            except HeartCoachError as e:
                st.error(e.user_message)

    with signup_tab, st.form("signup_form"):
        name = st.text_input("Name", key="signup_name")
        password = st.text_input("Password (4 digits)", type="password", max_chars=4, key="signup_pw")
        if st.form_submit_button("Sign up", use_container_width=True):
            try:
                auth = get_auth()
                account = auth.signup(name, password)
                auth.login(account.name, password)
                st.rerun()
            except HeartCoachError as e:
                st.error(e.user_message)


def render_student_home(name: str) -> None:
    st.markdown(f"### Hi, {name}!")
    st.write("How was your day? The coach is here to listen.")

    if st.button("💬 Start a new conversation", use_container_width=True):
        account = st.session_state.sessions.current()
        st.session_state.conversation = ConversationSession(
            account, get_coach(), get_repository(), get_settings().max_turns
        )
        st.session_state.student_view = "chat"
        st.rerun()

    if st.button("📖 Past conversations", use_container_width=True):
        st.session_state.student_view = "history"
        st.session_state.selected_conversation = None
        st.rerun()

    if st.button("Log out", use_container_width=True):
        get_auth().logout()
        st.session_state.conversation = None
        st.session_state.student_view = "home"
        st.rerun()


def render_chat() -> None:
    session: ConversationSession = st.session_state.conversation
    st.caption(f"{session.turns_left} message(s) left in today's conversation")
    render_messages(session.messages)

    if error := st.session_state.pop("chat_error", None):
        st.error(error)

    if session.is_complete:
        render_summary_card(session.summary)
        if st.button("Back to my page", use_container_width=True):
            st.session_state.conversation = None
            st.session_state.student_view = "home"
            st.rerun()
        return

    if session.state == ConversationState.SUMMARIZING:
        st.warning("The chat is over, but the summary is not ready yet.")
        if st.button("Try the summary again", use_container_width=True):
            try:
                with st.spinner("Summarizing..."):
                    session.finish()
            except HeartCoachError as e:
                st.session_state.chat_error = e.user_message
            st.rerun()
        return

    if prompt := st.chat_input("Type a message..."):
        try:
            with st.spinner("The coach is thinking..."):
                session.send(prompt)
        except HeartCoachError as e:
            st.session_state.chat_error = e.user_message
        st.rerun()


def render_history(name: str) -> None:
    conversations = get_history(get_repository(), name)
    selected_id = st.session_state.selected_conversation

    if selected_id:
        selected: Conversation = next(c for c in conversations if c.id == selected_id)
        st.markdown(f"#### {selected.timestamp.astimezone():%Y-%m-%d %H:%M}")
        render_messages(selected.messages)
        render_summary_card(selected.summary)
        if st.button("Back to list", use_container_width=True):
            st.session_state.selected_conversation = None
            st.rerun()
        return

    st.markdown("### Past conversations")
    if not conversations:
        st.write("No conversations yet.")
    for conversation in conversations:
        label = f"{conversation.timestamp.astimezone():%Y-%m-%d %H:%M} · {conversation.summary.mood}"
        if st.button(label, key=conversation.id, use_container_width=True):
            st.session_state.selected_conversation = conversation.id
            st.rerun()

    if st.button("Back to my page", use_container_width=True):
        st.session_state.student_view = "home"
        st.rerun()


def render_student_view() -> None:
    account = st.session_state.sessions.current()
    if account is None:
        if st.session_state.conversation is not None:
            st.warning("Your session has expired. Please log in again.")
            st.session_state.conversation = None
        render_student_auth()
        return

    st.session_state.sessions.refresh()
    view = st.session_state.student_view
    if view == "chat" and st.session_state.conversation is not None:
        render_chat()
    elif view == "history":
        render_history(account.name)
    else:
        render_student_home(account.name)


# ==================== TEACHER ====================


def render_teacher_unlock() -> None:
    with st.form("teacher_login"):
        password = st.text_input("Teacher password", type="password")
        if st.form_submit_button("Log in", use_container_width=True):
            if get_auth().verify_teacher_access(password):
                st.session_state.dashboard = None
                st.rerun()
            else:
                st.error("Incorrect password.")


def lock_teacher_view() -> None:
    st.session_state.sessions.lock_teacher()
    st.session_state.dashboard = None


def render_mood_dashboard() -> None:
    """Class mood by quadrant, classified once per unlock until refreshed."""
    if st.button("🔄 Refresh", key="refresh_dashboard"):
        st.session_state.dashboard = None

    if st.session_state.dashboard is None:
        with st.spinner("Reading the class mood..."):
            st.session_state.dashboard = MoodDashboard(get_repository(), get_coach()).compute()
    buckets = st.session_state.dashboard

    columns = st.columns(2)
    for index, (quadrant, rows) in enumerate(buckets.items()):
        with columns[index % 2]:
            st.markdown(
                f"<div style='background:{QUADRANT_COLORS[quadrant]};padding:0.5rem 1rem;"
                f"border-radius:10px;font-weight:600'>{quadrant.label}</div>",
                unsafe_allow_html=True,
            )
            if not rows:
                st.caption("No students")
            for row in rows:
                st.markdown(f"**{row.name}** · {row.mood} · {row.timestamp.astimezone():%m/%d}")


def render_student_management() -> None:
    auth = get_auth()
    students = auth.list_students()
    if not students:
        st.write("No students have signed up yet.")
    for account in students:
        col1, col2 = st.columns([3, 1])
        col1.write(account.name)
        if col2.button("Reset password", key=f"reset_{account.name}"):
            try:
                auth.reset_password(account.name)
                st.success(f"{account.name}'s password was reset to '0000'.")
            except HeartCoachError as e:
                st.error(e.user_message)


def render_teacher_settings() -> None:
    with st.form("teacher_password_form", clear_on_submit=True):
        old_password = st.text_input("Current password", type="password")
        new_password = st.text_input("New password (4+ digits)", type="password")
        if st.form_submit_button("Change password"):
            try:
                get_auth().change_teacher_password(old_password, new_password)
                st.success("Password changed.")
            except HeartCoachError as e:
                st.error(e.user_message)


def render_teacher_view() -> None:
    sessions: SessionManager = st.session_state.sessions
    if not sessions.teacher_unlocked:
        render_teacher_unlock()
        return

    dashboard_tab, manage_tab, settings_tab = st.tabs(["Mood dashboard", "Students", "Settings"])
    with dashboard_tab:
        render_mood_dashboard()
    with manage_tab:
        render_student_management()
    with settings_tab:
        render_teacher_settings()

    if st.button("Lock teacher view", key="lock_teacher"):
        lock_teacher_view()
        st.rerun()


def main() -> None:
    """Application entry point: pick a role, then render that role's view."""
    init_session_state()
    render_api_key_sidebar()

    st.title("💛 HeartCoach")

    role = st.session_state.role
    if role is None:
        col1, col2 = st.columns(2)
        if col1.button("I'm a student", use_container_width=True):
            st.session_state.role = "student"
            st.rerun()
        if col2.button("I'm a teacher", use_container_width=True):
            st.session_state.role = "teacher"
            st.rerun()
        return

    if st.sidebar.button("⬅ Home", use_container_width=True):
        st.session_state.role = None
        lock_teacher_view()
        st.rerun()

    if role == "student":
        render_student_view()
    else:
        render_teacher_view()


if __name__ == "__main__":
    main()
