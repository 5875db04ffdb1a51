"""Ukrainian HTML message texts sent to subscribers."""

from __future__ import annotations

from datetime import datetime, tzinfo

from grid_watch.telemetry.models import DeviceState, PowerStatus

TIME_FORMAT = "%H:%M %d.%m.%Y"

START_TEXT = "Бот Світло активний. Використовуй /status щоб перевірити стан електрики."
STATUS_ERROR_TEXT = "Помилка при отриманні статусу. Спробуйте пізніше."

_DEVICE_STATE_NAMES = {
    DeviceState.ONLINE: "Онлайн",
    DeviceState.ALERT: "Тривога",
    DeviceState.OFFLINE: "Офлайн",
}


def device_state_name(state: DeviceState) -> str:
    return _DEVICE_STATE_NAMES.get(state, "Офлайн")


def format_time(ts: datetime | None, tz: tzinfo) -> str:
    """Render a sample time in ``tz``; no timestamp means "now"."""
    if ts is None:
        return datetime.now(tz).strftime(TIME_FORMAT)
    return ts.astimezone(tz).strftime(TIME_FORMAT)


def _join(lines: list[str | None]) -> str:
    return "\n".join(line for line in lines if line is not None)


def format_power_on(status: PowerStatus, outage_line: str | None, tz: tzinfo) -> str:
    return _join([
        "<b>⚡ Світло З'ЯВИЛОСЬ!</b>",
        "",
        f"🔌 Мережа: {status.grid_power_w:.0f}W",
        f"🔋 Батарея: {status.battery_soc:.0f}%",
        f"☀️ Генерація: {status.generation_power_w:.0f}W",
        f"🏠 Споживання: {status.consumption_power_w:.0f}W",
        outage_line,
        f"🕐 {format_time(status.updated_at, tz)}",
    ])


def format_power_off(status: PowerStatus, outage_line: str | None, tz: tzinfo) -> str:
    return _join([
        "<b>❌ Світло ЗНИКЛО!</b>",
        "",
        f"🔋 Батарея: {status.battery_soc:.0f}%",
        f"☀️ Генерація: {status.generation_power_w:.0f}W",
        f"🏠 Споживання: {status.consumption_power_w:.0f}W",
        outage_line,
        f"🕐 {format_time(status.updated_at, tz)}",
    ])


def format_status(status: PowerStatus, outage_line: str | None, tz: tzinfo) -> str:
    if status.has_grid:
        headline = "⚡ Світло Є, але нема добра((("
    else:
        headline = "❌ Світла НЕМАЄ, але є добро"
    return _join([
        f"<b>{headline}</b>",
        "",
        f"☀️ Генерація: {status.generation_power_w:.0f}W",
        f"🏠 Споживання: {status.consumption_power_w:.0f}W",
        f"🔋 Батарея: {status.battery_soc:.0f}% ({status.battery_power_w:.0f}W)",
        f"📡 Пристрій: {device_state_name(status.device_state)}",
        outage_line,
        f"🕐 {format_time(status.updated_at, tz)}",
    ])
