class UIKeys:
    """Keys for UI widgets in ``st.session_state``."""

    NAV_BACK = "ui.nav.back"
    NAV_NEXT = "ui.nav.next"
    NAV_SUBMIT = "ui.nav.submit"
    NAV_RESET = "ui.nav.reset"


class StateKeys:
    """Keys for data stored in ``st.session_state``."""

    SNAPSHOTS = "wizard.snapshots"
    SUBMISSIONS = "wizard.submissions"


class SnapshotKeys:
    """Field names of the serialised snapshot payload."""

    STORAGE_KEY = "storage_key"
