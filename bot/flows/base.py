"""
Flow plumbing shared by every dialog.

A flow is a module with two coroutines:
  start(ctx, user_id, ...) -> FlowResult
  handle(ctx, event, state) -> FlowResult
FlowResult.state is the state to persist, or None to end the dialog.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable
from zoneinfo import ZoneInfo

from bot.api_client import ApiClient
from bot.config import Settings
from bot.states.base import DialogState

SKIP_COMMAND = "/skip"

# Button payloads understood by the flows
DATE_TODAY = "date:today"
DATE_TOMORROW = "date:tomorrow"
PRICE_ACCEPT = "price:accept"
COMMENT_SKIP = "comment:skip"
ADD_STOP_YES = "stop:add"
ADD_STOP_NO = "stop:done"
RETRY = "flow:retry"


class FlowStateError(Exception):
    """Session state is missing something a later step relies on."""


class EventKind(str, Enum):
    TEXT = "text"
    CALLBACK = "callback"
    CONTACT = "contact"
    PHOTO = "photo"


@dataclass
class Event:
    kind: EventKind
    user_id: int
    text: str | None = None
    data: str | None = None          # callback payload
    phone: str | None = None         # shared contact
    photo_file_id: str | None = None

    @property
    def clean_text(self) -> str:
        return (self.text or "").strip()


@dataclass
class Button:
    text: str
    data: str


@dataclass
class Reply:
    text: str
    buttons: list[list[Button]] = field(default_factory=list)
    request_contact: bool = False
    remove_keyboard: bool = False
    # Another chat to deliver to (admin notices); None means the user
    chat_id: int | None = None


@dataclass
class FlowResult:
    replies: list[Reply]
    state: DialogState | None = None

    @classmethod
    def stay(cls, state: DialogState, *texts: str, buttons: list[list[Button]] | None = None) -> "FlowResult":
        return cls(replies=[Reply(text, buttons=buttons or []) for text in texts], state=state)

    @classmethod
    def end(cls, *replies: Reply | str) -> "FlowResult":
        return cls(replies=[r if isinstance(r, Reply) else Reply(r) for r in replies], state=None)


@dataclass
class FlowContext:
    api: ApiClient
    settings: Settings
    clock: Callable[[], datetime] | None = None

    def now(self) -> datetime:
        tz = ZoneInfo(self.settings.TIMEZONE)
        if self.clock is not None:
            return self.clock().astimezone(tz)
        return datetime.now(tz)

    def today(self) -> date:
        return self.now().date()

    def today_allowed(self) -> bool:
        return self.now().hour < self.settings.ORDER_CUTOFF_HOUR

    def admin_notice(self, text: str) -> list[Reply]:
        if not self.settings.ADMIN_TELEGRAM_ID:
            return []
        return [Reply(text, chat_id=int(self.settings.ADMIN_TELEGRAM_ID))]


def date_buttons(ctx: FlowContext) -> list[list[Button]]:
    today = ctx.today()
    tomorrow = today + timedelta(days=1)
    row = []
    if ctx.today_allowed():
        row.append(Button(f"📅 Today ({today:%d.%m})", DATE_TODAY))
    row.append(Button(f"📅 Tomorrow ({tomorrow:%d.%m})", DATE_TOMORROW))
    return [row]


def pick_date(ctx: FlowContext, event: Event) -> date | None:
    """Date chosen by a date button, or None if the press is not a valid choice now."""
    if event.kind != EventKind.CALLBACK:
        return None
    if event.data == DATE_TOMORROW:
        return ctx.today() + timedelta(days=1)
    if event.data == DATE_TODAY and ctx.today_allowed():
        return ctx.today()
    return None


def parse_amount(text: str) -> int | None:
    cleaned = text.replace(" ", "").replace("₽", "").replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return int(round(value))
