from aiogram.fsm.state import StatesGroup, State


class TasksFlow(StatesGroup):
    # new task
    add_title = State()
    add_description = State()
    add_target_date = State()
    add_recurrence = State()
    add_interval = State()

    # edits on an existing task
    edit_title = State()
    edit_description = State()
    subtask_title = State()
    due_date = State()
    recurrence_interval = State()
