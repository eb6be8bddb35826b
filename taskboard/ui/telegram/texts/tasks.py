ASK_TITLE = "New task. What is the title?"
ASK_DESCRIPTION = "Description? (optional, send '-' to skip)"
ASK_TARGET_DATE = "Target date as YYYY-MM-DD? (optional, send '-' to skip)"
ASK_RECURRENCE = "Should it repeat?"
ASK_INTERVAL = "Repeat every how many {unit}s? (1-365)"
ASK_SUBTASK = "Subtask title?"
ASK_DUE_DATE = "New target date as YYYY-MM-DD (send '-' to clear)."
ASK_NEW_TITLE = "New title? Current: <b>{title}</b> (send '-' to keep it)"
ASK_NEW_DESCRIPTION = "New description? Send '-' to keep the current one, 'clear' to remove it."
BAD_DATE = "Could not read that date. Use YYYY-MM-DD, or '-'."
BAD_INTERVAL = "Send a whole number between 1 and 365."
TASK_ADDED = "Task added."
SAVED = "Saved."
SAVE_FAILED = "Could not save right now. Please try again."
TASK_MISSING = "That task is gone."
NO_CANDIDATES = "No other active users to add."
PICK_COLLABORATOR = "Who should get access?"
CONFIRM_DELETE = "Delete <b>{title}</b>?\nThis action cannot be undone."
CANCELLED = "Cancelled."
NOTHING_TO_CANCEL = "Nothing to cancel."
SIGN_IN_PENDING = "Your account is waiting for activation by an administrator."
SIGNED_OUT = "Signed out. Send /start to sign in again."

HELP = (
    "Commands:\n"
    "/tasks - your task board\n"
    "/shared - tasks shared with you\n"
    "/add - add a task\n"
    "/menu - show the menu keyboard\n"
    "/cancel - stop the current input\n"
    "/logout - sign out\n"
    "/users - manage accounts (admins)"
)
