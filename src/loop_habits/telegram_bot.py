from __future__ import annotations

import logging
from datetime import datetime

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from loop_habits.analytics import compute_status
from loop_habits.backup import backup_filename
from loop_habits.codec import dumps_state
from loop_habits.config import Settings
from loop_habits.insights import InsightsContext, LlmRoute, habit_insight
from loop_habits.messages import badges_message, habits_message, status_message, toggle_message
from loop_habits.models import CATEGORIES, AppState, Habit
from loop_habits.schedule import ALL_DAYS, parse_frequency
from loop_habits.service import (
    HabitValidationError,
    ToggleOutcome,
    add_habit,
    complete_onboarding,
    set_sleep_hours,
    toggle_completion,
)
from loop_habits.session import AppSession
from loop_habits.time_utils import now_local

logger = logging.getLogger(__name__)


def _session(context: ContextTypes.DEFAULT_TYPE) -> AppSession:
    session = context.application.bot_data.get("session")
    assert isinstance(session, AppSession)
    return session


def _settings(context: ContextTypes.DEFAULT_TYPE) -> Settings:
    settings = context.application.bot_data.get("settings")
    assert isinstance(settings, Settings)
    return settings


def _now(context: ContextTypes.DEFAULT_TYPE) -> datetime:
    return now_local(_settings(context).tz)


def _is_owner(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    owner = _settings(context).owner_chat_id
    if owner is None:
        return True
    chat = update.effective_chat
    if chat is not None and chat.id == owner:
        return True
    logger.info("ignored update from chat_id=%s", chat.id if chat else None)
    return False


def build_habits_keyboard(state: AppState) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(f"{habit.icon} {habit.title}", callback_data=f"toggle:{habit.id}")]
        for habit in state.habits
    ]
    rows.append(
        [
            InlineKeyboardButton("Status", callback_data="status"),
            InlineKeyboardButton("Badges", callback_data="badges"),
        ]
    )
    return InlineKeyboardMarkup(rows)


def resolve_habit_ref(state: AppState, ref: str) -> Habit | None:
    """Accept a 1-based list position, a habit id or a case-insensitive title."""
    token = ref.strip()
    if token.isdigit():
        idx = int(token) - 1
        if 0 <= idx < len(state.habits):
            return state.habits[idx]
    habit = state.habit(token)
    if habit is not None:
        return habit
    for habit in state.habits:
        if habit.title.lower() == token.lower():
            return habit
    return None


def _args_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    return " ".join(context.args or []).strip()


def _split_fields(text: str) -> list[str]:
    return [part.strip() for part in text.split("|")]


def _toggle(context: ContextTypes.DEFAULT_TYPE, habit_id: str) -> ToggleOutcome:
    now = _now(context)

    def transition(state: AppState) -> tuple[AppState, ToggleOutcome]:
        outcome = toggle_completion(state, habit_id, now.date(), at=now.time())
        return outcome.state, outcome

    outcome = _session(context).apply(transition)
    logger.info(
        "toggled habit_id=%s found=%s completed=%s delta=%s",
        habit_id,
        outcome.found,
        outcome.completed,
        outcome.points_delta,
    )
    return outcome


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    session = _session(context)
    if session.state.profile.is_onboarded:
        await update.effective_message.reply_text(
            f"Welcome back, {session.state.profile.name}!\n\n{habits_message(session.state, _now(context).date())}",
            reply_markup=build_habits_keyboard(session.state),
        )
        return

    fields = _split_fields(_args_text(context))
    if len(fields) < 2 or not fields[0] or not fields[1]:
        await update.effective_message.reply_text("Usage: /start <your name> | <first habit>")
        return

    now = _now(context)
    try:
        habit = session.apply(lambda state: complete_onboarding(state, fields[0], fields[1], now.isoformat()))
    except HabitValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    await update.effective_message.reply_text(
        f"Hi {fields[0]}! Your first habit {habit.icon} {habit.title} is ready. Mark it with /done 1.",
        reply_markup=build_habits_keyboard(session.state),
    )


async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    fields = _split_fields(_args_text(context))
    if not fields or not fields[0]:
        await update.effective_message.reply_text(
            "Usage: /add <title> | [days: daily, weekdays, mon,wed,fri] | [HH:MM] | [category]"
        )
        return

    try:
        frequency = parse_frequency(fields[1]) if len(fields) > 1 and fields[1] else ALL_DAYS
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    reminder = fields[2] if len(fields) > 2 and fields[2] else None
    category = fields[3].capitalize() if len(fields) > 3 and fields[3] else CATEGORIES[0]

    now = _now(context)
    try:
        habit = _session(context).apply(
            lambda state: add_habit(
                state,
                fields[0],
                now.isoformat(),
                category=category,
                frequency=frequency,
                reminder_time=reminder,
            )
        )
    except HabitValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    logger.info("added habit_id=%s", habit.id)
    await update.effective_message.reply_text(f"Added {habit.icon} {habit.title}.")


async def cmd_habits(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    state = _session(context).state
    await update.effective_message.reply_text(
        habits_message(state, _now(context).date()),
        reply_markup=build_habits_keyboard(state),
    )


async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    ref = _args_text(context)
    if not ref:
        await update.effective_message.reply_text("Usage: /done <number|title>")
        return
    habit = resolve_habit_ref(_session(context).state, ref)
    if habit is None:
        await update.effective_message.reply_text(f"No habit matches '{ref}'. See /habits.")
        return
    outcome = _toggle(context, habit.id)
    await update.effective_message.reply_text(toggle_message(outcome, habit))


async def cmd_sleep(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    raw = _args_text(context).replace(",", ".").rstrip("h")
    try:
        hours = float(raw)
    except ValueError:
        await update.effective_message.reply_text("Usage: /sleep <hours>, e.g. /sleep 7.5")
        return
    today = _now(context).date()
    try:
        _session(context).apply(lambda state: (set_sleep_hours(state, today, hours), None))
    except HabitValidationError as exc:
        await update.effective_message.reply_text(str(exc))
        return
    await update.effective_message.reply_text(f"😴 Logged {hours:g}h of sleep for today.")


async def cmd_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    view = compute_status(_session(context).state, _now(context).date())
    await update.effective_message.reply_text(status_message(view))


async def cmd_badges(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    await update.effective_message.reply_text(badges_message(_session(context).state.profile))


async def cmd_insight(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    settings = _settings(context)
    ctx = InsightsContext(
        enabled=settings.insights_enabled,
        route=LlmRoute(
            provider=settings.insights_provider,
            model=settings.insights_model,
            api_key=settings.insights_api_key,
        ),
    )
    await update.effective_message.reply_text(habit_insight(ctx, _session(context).state))


async def cmd_export(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_owner(update, context):
        return
    payload = dumps_state(_session(context).state).encode("utf-8")
    await update.effective_message.reply_document(
        document=payload,
        filename=backup_filename(_now(context).date()),
    )


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None or not _is_owner(update, context):
        return
    await query.answer()
    data = query.data or ""

    if data == "status":
        view = compute_status(_session(context).state, _now(context).date())
        await query.message.reply_text(status_message(view))
        return
    if data == "badges":
        await query.message.reply_text(badges_message(_session(context).state.profile))
        return
    if data.startswith("toggle:"):
        habit_id = data.split(":", 1)[1]
        outcome = _toggle(context, habit_id)
        habit = outcome.state.habit(habit_id)
        if not outcome.found or habit is None:
            await query.message.reply_text("That habit no longer exists.")
            return
        await query.message.reply_text(toggle_message(outcome, habit))


def build_application(settings: Settings, session: AppSession) -> Application:
    app = Application.builder().token(settings.telegram_bot_token).build()
    app.bot_data["settings"] = settings
    app.bot_data["session"] = session

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("habits", cmd_habits))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("sleep", cmd_sleep))
    app.add_handler(CommandHandler("status", cmd_status))
    app.add_handler(CommandHandler("badges", cmd_badges))
    app.add_handler(CommandHandler("insight", cmd_insight))
    app.add_handler(CommandHandler("export", cmd_export))
    app.add_handler(CallbackQueryHandler(handle_callback))
    return app
