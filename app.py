from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import streamlit as st
from dotenv import load_dotenv
from pydantic import ValidationError

from src.config.settings import (
    configure_logging,
    ensure_runtime_dirs,
    load_settings,
    validate_settings,
)
from src.db.sqlite_client import get_connection, init_schema
from src.engine.availability import get_group_availability, get_optimal_time_slots
from src.polls.errors import ApiError
from src.polls.repository import create_poll, get_poll_by_id, get_share_url
from src.polls.validation import MAX_DATES, CreatePollRequest, VoteRequest, validation_details
from src.polls.voting import localize_poll_slots, slot_key, submit_vote
from src.utils.health import readiness
from src.utils.invite_text import generate_invite
from src.utils.timezone import (
    detect_user_timezone,
    format_date_for_display,
    format_time_for_display,
    get_all_timezones,
    get_timezone_offset_string,
    minutes_to_time,
)

START_TIME_CHOICES = [minutes_to_time(minutes) for minutes in range(7 * 60, 21 * 60, 30)]


@st.cache_resource
def get_runtime() -> dict[str, Any]:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings.log_level)
    ensure_runtime_dirs(settings)
    errors = validate_settings(settings)
    conn: Any | None = None
    try:
        conn = get_connection(settings.sqlite_db_path, settings.database_url)
        init_schema(conn)
    except Exception as exc:
        errors.append(f"Database initialization failed: {exc}")
    return {"settings": settings, "conn": conn, "errors": errors}


@st.cache_data(ttl=3600)
def timezone_choices() -> list[tuple[str, str]]:
    return [(option.value, option.label) for option in get_all_timezones()]


def init_state() -> None:
    defaults = {
        "current_view": "landing",
        "poll_id": None,
        "participant_timezone": detect_user_timezone(),
        "last_participant_id": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def title_and_breadcrumb() -> None:
    st.title("BetterMeet")
    mapping = {"landing": "Create", "poll": "Vote", "results": "Results"}
    st.caption(
        f"Flow: Create > Vote > Results | Current: {mapping[st.session_state.current_view]}"
    )


def _timezone_select(label: str, key: str, default: str) -> str:
    choices = timezone_choices()
    values = [value for value, _ in choices]
    labels = dict(choices)
    index = values.index(default) if default in values else values.index("UTC")
    return st.selectbox(
        label, values, index=index, key=key, format_func=lambda value: labels.get(value, value)
    )


def _slot_label(slot: dict[str, Any]) -> str:
    # Slot values are wall-clock; rendering them in UTC leaves them unchanged.
    start = f"{slot['date']}T{slot['start_time']}"
    end = f"{slot['date']}T{slot['end_time']}"
    return (
        f"{format_date_for_display(start, 'UTC')} "
        f"{format_time_for_display(start, 'UTC')} - {format_time_for_display(end, 'UTC')}"
    )


def _show_errors(exc: ApiError | ValidationError) -> None:
    if isinstance(exc, ValidationError):
        details = validation_details(exc)
        st.error("Please check your input and try again.")
    else:
        details = exc.details or {}
        st.error(exc.message)
    for field, message in details.items():
        st.write(f"- {field}: {message}")


def _open_poll(poll_id: str, view: str) -> None:
    st.session_state.poll_id = poll_id
    st.session_state.current_view = view
    st.query_params["poll"] = poll_id
    st.rerun()


def _poll_id_from_input(value: str) -> str:
    return value.strip().rstrip("/").split("/poll/")[-1].split("poll=")[-1].strip()


def _date_list(selection: Any) -> list[str]:
    if isinstance(selection, (tuple, list)):
        if len(selection) == 2:
            start, end = selection
        elif len(selection) == 1:
            start = end = selection[0]
        else:
            return []
    else:
        start = end = selection
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def render_landing() -> None:
    runtime = get_runtime()
    conn = runtime["conn"]
    col_a, col_b = st.columns(2)

    with col_a:
        st.subheader("Create a poll")
        title = st.text_input("Title", key="create_title")
        description = st.text_area("Description (optional)", key="create_description")
        organizer_timezone = _timezone_select(
            "Your timezone", "create_timezone", runtime["settings"].default_timezone
        )
        tomorrow = date.today() + timedelta(days=1)
        selection = st.date_input(
            f"Dates (up to {MAX_DATES} days)",
            value=(tomorrow, tomorrow + timedelta(days=4)),
            min_value=tomorrow,
        )
        start_times = st.multiselect(
            "Start times", START_TIME_CHOICES, default=["09:00", "10:00", "14:00"]
        )
        duration = st.selectbox("Slot length (minutes)", [30, 60, 90, 120], index=1)
        if st.button("Create poll"):
            dates = _date_list(selection)
            payload = {
                "title": title,
                "description": description or None,
                "organizerTimezone": organizer_timezone,
                "dates": dates,
                "timeSlots": [
                    {
                        "date": day,
                        "startTime": start,
                        "endTime": minutes_to_time(
                            min(int(start[:2]) * 60 + int(start[3:]) + duration, 23 * 60 + 59)
                        ),
                    }
                    for day in dates
                    for start in start_times
                ],
            }
            try:
                poll = create_poll(conn, CreatePollRequest.model_validate(payload))
            except (ApiError, ValidationError) as exc:
                _show_errors(exc)
                return
            st.success("Poll created.")
            _open_poll(poll["id"], "results")

    with col_b:
        st.subheader("Open a poll")
        poll_input = st.text_input("Share link or poll ID", key="open_poll_input")
        if st.button("Open poll"):
            poll_id = _poll_id_from_input(poll_input)
            if not poll_id or get_poll_by_id(conn, poll_id) is None:
                st.error("The requested poll could not be found.")
            else:
                _open_poll(poll_id, "poll")


def render_poll() -> None:
    runtime = get_runtime()
    conn = runtime["conn"]
    poll = get_poll_by_id(conn, st.session_state.poll_id)
    if poll is None:
        st.error("The requested poll could not be found.")
        return
    st.subheader(poll["title"])
    if poll.get("description"):
        st.write(poll["description"])
    st.caption(
        f"Organized in {poll['organizer_timezone']} "
        f"({get_timezone_offset_string(poll['organizer_timezone'])})"
    )

    timezone = _timezone_select(
        "Show times in", "participant_timezone_select", st.session_state.participant_timezone
    )
    st.session_state.participant_timezone = timezone
    slots = localize_poll_slots(poll, timezone)

    selected: list[str] = []
    with st.form("vote_form"):
        name = st.text_input("Your name")
        email = st.text_input("Email (optional)")
        current_day = None
        for slot in slots:
            if slot["date"] != current_day:
                current_day = slot["date"]
                st.markdown(f"**{format_date_for_display(current_day + 'T00:00', 'UTC')}**")
            key = slot_key(slot)
            if st.checkbox(_slot_label(slot), key=f"slot_{slot['id']}_{key}"):
                selected.append(key)
        submitted = st.form_submit_button("Submit availability")

    if submitted:
        try:
            participant = submit_vote(
                conn,
                poll["id"],
                VoteRequest(
                    name=name,
                    email=email or None,
                    timezone=timezone,
                    selected_slots=selected,
                ),
            )
        except ApiError as exc:
            _show_errors(exc)
            return
        st.session_state.last_participant_id = participant["id"]
        st.success("Vote submitted successfully")

    if st.button("See results"):
        _open_poll(poll["id"], "results")


def render_results() -> None:
    runtime = get_runtime()
    conn = runtime["conn"]
    poll = get_poll_by_id(conn, st.session_state.poll_id)
    if poll is None:
        st.error("The requested poll could not be found.")
        return
    st.subheader(f"Results: {poll['title']}")
    group = get_group_availability(poll)
    st.write(f"{group['participant_count']} participant(s) responded.")

    best = get_optimal_time_slots(poll, limit=3)
    if group["participant_count"] and best:
        st.markdown(f"### Best times ({poll['organizer_timezone']})")
        for slot in best:
            st.write(
                f"{_slot_label(slot)}: {slot['availability_count']} available "
                f"({slot['availability_percentage']:.0f}%)"
            )

    names = {participant["id"]: participant["name"] for participant in poll["participants"]}
    st.dataframe(
        [
            {
                "Slot": _slot_label(slot),
                "Available": slot["availability_count"],
                "Percent": round(slot["availability_percentage"]),
                "Who": ", ".join(names[pid] for pid in slot["participant_ids"]),
            }
            for slot in group["slots"]
        ],
        use_container_width=True,
    )

    share_url = get_share_url(runtime["settings"].base_url, poll["id"])
    st.text_input("Share link", value=share_url)
    invite = generate_invite(
        poll["title"], share_url, poll["organizer_timezone"], best[0] if best else None
    )
    st.text_area("Invite text", value=invite, height=120)
    if st.button("Add my availability"):
        _open_poll(poll["id"], "poll")


def main() -> None:
    st.set_page_config(
        page_title="BetterMeet",
        page_icon=":calendar:",
        layout="wide",
        initial_sidebar_state="collapsed",
    )
    init_state()
    runtime = get_runtime()
    if runtime["errors"]:
        st.error("Startup validation failed.")
        for error in runtime["errors"]:
            st.write(f"- {error}")
        return
    status = readiness(runtime["conn"])
    if not status["ok"]:
        st.error("Readiness check failed.")
        st.json(status)
        return

    linked_poll = st.query_params.get("poll")
    if linked_poll and st.session_state.current_view == "landing":
        st.session_state.poll_id = linked_poll
        st.session_state.current_view = "poll"
    title_and_breadcrumb()
    if st.button("New poll"):
        st.query_params.clear()
        st.session_state.poll_id = None
        st.session_state.current_view = "landing"
        st.rerun()
    if st.session_state.current_view == "landing":
        render_landing()
    elif st.session_state.current_view == "poll":
        render_poll()
    else:
        render_results()


if __name__ == "__main__":
    main()
