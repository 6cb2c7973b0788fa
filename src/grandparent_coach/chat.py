from __future__ import annotations

from loguru import logger

from grandparent_coach.client.orchestrator import DialogueOrchestrator, Outcome
from grandparent_coach.client.topics import known_topics
from grandparent_coach.commands.router import CommandRouter
from grandparent_coach.console import Spinner
from grandparent_coach.services.session_controller import SessionController


class ChatConsole:
    """Line-oriented console front end for the dialogue orchestrator."""

    _LINE_PREFIX = "coach> "

    def __init__(self, orchestrator: DialogueOrchestrator):
        self._orchestrator = orchestrator
        self._controller = SessionController(line_prefix=self._LINE_PREFIX)
        # last summary per session, saved with the favorite
        self._summaries: dict[str, str] = {}
        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_new=self._on_new,
            on_sessions=self._on_sessions,
            on_open=self._on_open,
            on_rename=self._on_rename,
            on_delete=self._on_delete,
            on_summary=self._on_summary,
            on_usage=self._on_usage,
            on_favorite=self._on_favorite,
            on_favorites=self._on_favorites,
            on_unfavorite=self._on_unfavorite,
            on_unknown=self._on_unknown,
        )

    async def handle(self, line: str) -> None:
        if await self._command_router.try_handle(line):
            return

        with Spinner(prefix=self._LINE_PREFIX):
            result = await self._orchestrator.send(line)

        if result.outcome in (Outcome.REPLIED, Outcome.SAFETY_BLOCKED):
            print(result.content)
        elif result.outcome is Outcome.RATE_LIMITED and result.retry_after:
            print(f"{result.error} (retry in {result.retry_after}s)")
        else:
            print(result.error)

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Commands:")
        print(f"{self._LINE_PREFIX}  /new [topic]       start a conversation ({', '.join(known_topics())})")
        print(f"{self._LINE_PREFIX}  /sessions [limit]  list recent conversations")
        print(f"{self._LINE_PREFIX}  /open <id>         switch to a conversation")
        print(f"{self._LINE_PREFIX}  /rename <title>    rename the current conversation")
        print(f"{self._LINE_PREFIX}  /delete <id>       delete a conversation")
        print(f"{self._LINE_PREFIX}  /summary           one-page summary of the current conversation")
        print(f"{self._LINE_PREFIX}  /usage             free replies left")
        print(f"{self._LINE_PREFIX}  /favorite [title]  save the current conversation (with its last summary)")
        print(f"{self._LINE_PREFIX}  /favorites         list saved conversations")
        print(f"{self._LINE_PREFIX}  /unfavorite <id>   remove a saved conversation")

    async def _on_new(self, topic: str) -> None:
        session = self._orchestrator.start_session(topic or None)
        print(f"{self._LINE_PREFIX}Started [{self._controller.short_id(session.id)}]")
        for line in self._controller.format_transcript_lines(self._orchestrator.messages):
            print(line)

    async def _on_sessions(self, argument: str) -> None:
        limit = 20
        if argument:
            try:
                limit = int(argument)
            except ValueError:
                print(f"{self._LINE_PREFIX}Usage: /sessions [limit]")
                return
        sessions = self._orchestrator.refresh_sessions()[:limit]
        if not sessions:
            print(f"{self._LINE_PREFIX}No conversations yet.")
            return
        active = self._orchestrator.active_session
        for session in sessions:
            print(self._controller.format_session_list_entry(session, active_session_id=active.id if active else None))

    async def _on_open(self, argument: str) -> None:
        session_id = self._resolve(argument)
        if session_id is None:
            return
        messages = self._orchestrator.open_session(session_id)
        for line in self._controller.format_transcript_lines(messages):
            print(line)

    async def _on_rename(self, title: str) -> None:
        active = self._orchestrator.active_session
        if active is None or not title:
            print(f"{self._LINE_PREFIX}Usage: /rename <title> (with a conversation open)")
            return
        self._orchestrator.rename_session(active.id, title)
        print(f"{self._LINE_PREFIX}Renamed to: {title}")

    async def _on_delete(self, argument: str) -> None:
        session_id = self._resolve(argument)
        if session_id is None:
            return
        if self._orchestrator.delete_session(session_id):
            print(f"{self._LINE_PREFIX}Deleted [{self._controller.short_id(session_id)}]")
        else:
            print(f"{self._LINE_PREFIX}Could not delete that conversation, please try again.")

    async def _on_summary(self) -> None:
        if self._orchestrator.active_session is None:
            print(f"{self._LINE_PREFIX}Open a conversation first.")
            return
        try:
            with Spinner(prefix=self._LINE_PREFIX, label=" Summarizing..."):
                result = await self._orchestrator.summarize_session()
        except ValueError as ex:
            print(f"{self._LINE_PREFIX}{ex}")
            return
        if result.ok and result.content:
            self._summaries[result.session_id] = result.content
        print(result.content if result.ok else result.error)

    async def _on_usage(self) -> None:
        left = self._orchestrator.free_replies_left
        if left is None:
            print(f"{self._LINE_PREFIX}Pro: unlimited replies")
        else:
            print(f"{self._LINE_PREFIX}Free replies left: {left}")

    async def _on_favorite(self, title: str) -> None:
        active = self._orchestrator.active_session
        if active is None:
            print(f"{self._LINE_PREFIX}Open a conversation first.")
            return
        favorite = self._orchestrator.add_favorite(title or None, summary=self._summaries.get(active.id))
        if favorite is None:
            print(f"{self._LINE_PREFIX}Could not save that favorite, please try again.")
            return
        print(f"{self._LINE_PREFIX}Saved favorite: {favorite.title} [{self._controller.short_id(favorite.id)}]")

    async def _on_favorites(self) -> None:
        favorites = self._orchestrator.list_favorites()
        if not favorites:
            print(f"{self._LINE_PREFIX}No favorites yet.")
            return
        for favorite in favorites:
            print(self._controller.format_favorite_entry(favorite))

    async def _on_unfavorite(self, argument: str) -> None:
        matches = [f.id for f in self._orchestrator.list_favorites() if argument and f.id.startswith(argument)]
        if len(matches) != 1:
            print(f"{self._LINE_PREFIX}Usage: /unfavorite <id> (see /favorites)")
            return
        self._orchestrator.remove_favorite(matches[0])
        print(f"{self._LINE_PREFIX}Removed favorite [{self._controller.short_id(matches[0])}]")

    def _on_unknown(self, command: str) -> None:
        logger.debug(f"Unknown command: {command}")
        print(f"{self._LINE_PREFIX}Unknown command: {command} (try /help)")

    def _resolve(self, argument: str) -> str | None:
        if not argument:
            print(f"{self._LINE_PREFIX}Usage: /open <id> or /delete <id>")
            return None
        matches = [s.id for s in self._orchestrator.refresh_sessions() if s.id.startswith(argument)]
        if len(matches) != 1:
            print(f"{self._LINE_PREFIX}{'No' if not matches else 'Ambiguous'} conversation: {argument}")
            return None
        return matches[0]
