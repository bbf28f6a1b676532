from __future__ import annotations

from playtrack.core.monitor.types import GameEnded, GameEvent, GameStarted


def format_duration(seconds: int) -> str:
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def build_session_payload(evt: GameEvent) -> dict:
    title = "PlayTrack"
    if isinstance(evt, GameStarted):
        body = f"Now tracking: {evt.game_title}"
    elif isinstance(evt, GameEnded):
        body = f"Session ended: {evt.game_title}\nPlayed {format_duration(evt.play_time_seconds)}"
    else:
        raise TypeError(f"unsupported event {evt!r}")
    return {"title": title, "body": body}
