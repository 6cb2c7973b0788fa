from __future__ import annotations

from collections.abc import Awaitable, Callable


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_new: Callable[[str], Awaitable[None]],
        on_sessions: Callable[[str], Awaitable[None]],
        on_open: Callable[[str], Awaitable[None]],
        on_rename: Callable[[str], Awaitable[None]],
        on_delete: Callable[[str], Awaitable[None]],
        on_summary: Callable[[], Awaitable[None]],
        on_usage: Callable[[], Awaitable[None]],
        on_favorite: Callable[[str], Awaitable[None]],
        on_favorites: Callable[[], Awaitable[None]],
        on_unfavorite: Callable[[str], Awaitable[None]],
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._on_new = on_new
        self._on_sessions = on_sessions
        self._on_open = on_open
        self._on_rename = on_rename
        self._on_delete = on_delete
        self._on_summary = on_summary
        self._on_usage = on_usage
        self._on_favorite = on_favorite
        self._on_favorites = on_favorites
        self._on_unfavorite = on_unfavorite
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        command, _, argument = trimmed.partition(" ")
        argument = argument.strip()

        if command == "/help":
            await self._on_help()
        elif command == "/new":
            await self._on_new(argument)
        elif command == "/sessions":
            await self._on_sessions(argument)
        elif command == "/open":
            await self._on_open(argument)
        elif command == "/rename":
            await self._on_rename(argument)
        elif command == "/delete":
            await self._on_delete(argument)
        elif command == "/summary":
            await self._on_summary()
        elif command == "/usage":
            await self._on_usage()
        elif command == "/favorite":
            await self._on_favorite(argument)
        elif command == "/favorites":
            await self._on_favorites()
        elif command == "/unfavorite":
            await self._on_unfavorite(argument)
        else:
            self._on_unknown(trimmed)
        return True
