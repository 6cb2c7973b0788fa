import asyncio

from grandparent_coach.client import DialogueOrchestrator, GatewayRateLimitedError, GatewayUnavailableError, Outcome
from grandparent_coach.client.topics import DEFAULT_TITLE, GREETING
from grandparent_coach.store import MessageValidationError, Role
from tests.store.base import StoreTestCase


class FakeGateway:
    def __init__(self, reply: str = "Stay calm and name the feeling.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.coach_calls: list[tuple[list[dict], dict | None]] = []
        self.summary_calls: list[dict] = []

    async def coach(self, messages, context=None) -> str:
        self.coach_calls.append((messages, context))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.reply

    async def summarize(self, *, messages=None, transcript=None, audience=None) -> str:
        self.summary_calls.append({"messages": messages, "transcript": transcript, "audience": audience})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return "Summary"


class DialogueOrchestratorTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._gateway = FakeGateway()
        self._pro = False
        self._orchestrator = self._make_orchestrator()

    def _make_orchestrator(self, **kwargs) -> DialogueOrchestrator:
        return DialogueOrchestrator(
            self._sessions,
            self._usage,
            self._gateway,
            is_pro=lambda: self._pro,
            **kwargs,
        )

    def test_first_message_creates_session_and_gets_reply(self) -> None:
        result = asyncio.run(self._orchestrator.send("Help with tantrums"))

        self.assertIs(Outcome.REPLIED, result.outcome)
        self.assertTrue(result.ok)
        stored = self._sessions.list_messages(result.session_id)
        self.assertEqual([Role.USER, Role.ASSISTANT], [m.role for m in stored])
        self.assertEqual("Help with tantrums", stored[0].content)
        self.assertEqual("Stay calm and name the feeling.", stored[1].content)
        self.assertEqual(1, self._usage.get())
        self.assertEqual(stored, self._orchestrator.messages)
        self.assertEqual("Help with tantrums", self._sessions.get_session(result.session_id).title)

    def test_history_is_sent_in_order(self) -> None:
        asyncio.run(self._orchestrator.send("Help with tantrums"))
        asyncio.run(self._orchestrator.send("She is four"))

        messages, _ = self._gateway.coach_calls[-1]
        self.assertEqual(
            [
                {"role": "user", "content": "Help with tantrums"},
                {"role": "assistant", "content": "Stay calm and name the feeling."},
                {"role": "user", "content": "She is four"},
            ],
            messages,
        )

    def test_gateway_failure_keeps_user_message_only(self) -> None:
        self._gateway.error = GatewayUnavailableError("Gateway unreachable")
        result = asyncio.run(self._orchestrator.send("Help with sharing"))

        self.assertIs(Outcome.FAILED, result.outcome)
        self.assertFalse(result.ok)
        self.assertIsNotNone(result.error)
        stored = self._sessions.list_messages(result.session_id)
        self.assertEqual([Role.USER], [m.role for m in stored])
        self.assertEqual(0, self._usage.get())

    def test_rate_limited_reports_retry_after(self) -> None:
        self._gateway.error = GatewayRateLimitedError("Too many requests", retry_after=42)
        result = asyncio.run(self._orchestrator.send("Help with sharing"))

        self.assertIs(Outcome.RATE_LIMITED, result.outcome)
        self.assertEqual(42, result.retry_after)
        self.assertEqual(0, self._usage.get())

    def test_empty_reply_is_a_failure(self) -> None:
        self._gateway.reply = "   "
        result = asyncio.run(self._orchestrator.send("Help with sharing"))
        self.assertIs(Outcome.FAILED, result.outcome)
        self.assertEqual(1, len(self._sessions.list_messages(result.session_id)))

    def test_upgrade_required_when_free_tier_used(self) -> None:
        for _ in range(3):
            self._usage.increment()
        result = asyncio.run(self._orchestrator.send("Help with bedtime"))

        self.assertIs(Outcome.UPGRADE_REQUIRED, result.outcome)
        self.assertEqual([], self._gateway.coach_calls)
        self.assertEqual(3, self._usage.get())
        self.assertEqual([Role.USER], [m.role for m in self._sessions.list_messages(result.session_id)])

    def test_pro_users_skip_the_gate_and_counter(self) -> None:
        self._pro = True
        for _ in range(3):
            self._usage.increment()
        result = asyncio.run(self._orchestrator.send("Help with bedtime"))

        self.assertIs(Outcome.REPLIED, result.outcome)
        self.assertEqual(3, self._usage.get())
        self.assertIsNone(self._orchestrator.free_replies_left)

    def test_reset_usage_reopens_free_tier(self) -> None:
        for _ in range(3):
            self._usage.increment()
        self._orchestrator.reset_usage()
        self.assertEqual(3, self._orchestrator.free_replies_left)

    def test_safety_block_stores_canned_reply_without_network(self) -> None:
        result = asyncio.run(self._orchestrator.send("My grandson swallowed poison"))

        self.assertIs(Outcome.SAFETY_BLOCKED, result.outcome)
        self.assertTrue(result.ok)
        self.assertEqual([], self._gateway.coach_calls)
        self.assertEqual(0, self._usage.get())
        stored = self._sessions.list_messages(result.session_id)
        self.assertEqual([Role.USER, Role.ASSISTANT], [m.role for m in stored])
        self.assertIn("emergency services", stored[1].content)

    def test_empty_message_rejected_before_anything_is_stored(self) -> None:
        with self.assertRaises(MessageValidationError):
            asyncio.run(self._orchestrator.send("   "))
        self.assertEqual([], self._sessions.list_sessions())

    def test_start_session_seeds_greeting_and_topic_prompt(self) -> None:
        session = self._orchestrator.start_session("tantrums")

        self.assertEqual(DEFAULT_TITLE, session.title)
        stored = self._sessions.list_messages(session.id)
        self.assertEqual(GREETING, stored[0].content)
        self.assertIn("tantrums", stored[1].content)
        self.assertTrue(all(m.role is Role.ASSISTANT for m in stored))

        asyncio.run(self._orchestrator.send("He screams at the shop"))
        _, context = self._gateway.coach_calls[0]
        self.assertEqual("tantrums", context["topic"])
        self.assertEqual("He screams at the shop", self._sessions.get_session(session.id).title)

    def test_title_is_truncated_to_six_words(self) -> None:
        result = asyncio.run(self._orchestrator.send("my granddaughter will not share her toys with anyone"))
        self.assertEqual("my granddaughter will not share her…", self._sessions.get_session(result.session_id).title)

    def test_title_set_only_from_first_user_message(self) -> None:
        first = asyncio.run(self._orchestrator.send("Bedtime help"))
        asyncio.run(self._orchestrator.send("Another question entirely"))
        self.assertEqual("Bedtime help", self._sessions.get_session(first.session_id).title)

    def test_context_includes_age_range_and_digest(self) -> None:
        orchestrator = self._make_orchestrator(age_range="3-5")
        asyncio.run(orchestrator.send("Earlier chat about mealtime"))
        orchestrator.close_session()
        asyncio.run(orchestrator.send("New question"))

        _, context = self._gateway.coach_calls[-1]
        self.assertEqual("3-5", context["ageRange"])
        self.assertIn("Earlier chat about mealtime", context["conversationHistory"])
        self.assertNotIn("New question", context["conversationHistory"])

    def test_concurrent_sends_append_in_order(self) -> None:
        self._pro = True
        session = self._orchestrator.start_session(greet=False)

        async def run() -> None:
            await asyncio.gather(*(self._orchestrator.send(f"question {i}") for i in range(4)))

        asyncio.run(run())
        stored = self._sessions.list_messages(session.id)
        self.assertEqual(8, len(stored))
        self.assertEqual([Role.USER, Role.ASSISTANT] * 4, [m.role for m in stored])

    def test_open_rename_delete(self) -> None:
        result = asyncio.run(self._orchestrator.send("Screen time rules"))
        self._orchestrator.close_session()

        messages = self._orchestrator.open_session(result.session_id)
        self.assertEqual(2, len(messages))
        self._orchestrator.rename_session(result.session_id, "Screens")
        self.assertEqual("Screens", self._orchestrator.active_session.title)

        self.assertTrue(self._orchestrator.delete_session(result.session_id))
        self.assertIsNone(self._orchestrator.active_session)
        self.assertEqual([], self._orchestrator.session_list)
        with self.assertRaises(ValueError):
            self._orchestrator.open_session(result.session_id)

    def test_summarize_session(self) -> None:
        asyncio.run(self._orchestrator.send("Bedtime help"))
        result = asyncio.run(self._orchestrator.summarize_session(audience="the parents"))

        self.assertIs(Outcome.REPLIED, result.outcome)
        self.assertEqual("Summary", result.content)
        call = self._gateway.summary_calls[0]
        self.assertEqual("the parents", call["audience"])
        self.assertEqual(2, len(call["messages"]))

    def test_summarize_without_session_raises(self) -> None:
        with self.assertRaises(ValueError):
            asyncio.run(self._orchestrator.summarize_session())

    def test_free_tier_gate_holds_under_concurrent_sends(self) -> None:
        session = self._orchestrator.start_session(greet=False)

        async def run() -> list:
            return await asyncio.gather(*(self._orchestrator.send(f"question {i}") for i in range(4)))

        results = asyncio.run(run())
        self.assertEqual(
            [Outcome.REPLIED] * 3 + [Outcome.UPGRADE_REQUIRED],
            [r.outcome for r in results],
        )
        self.assertEqual(3, self._usage.get())
        self.assertEqual(7, len(self._sessions.list_messages(session.id)))

    def test_topic_survives_reopening_the_session(self) -> None:
        session = self._orchestrator.start_session("tantrums")

        reopened = self._make_orchestrator()
        reopened.open_session(session.id)
        asyncio.run(reopened.send("He screams at the shop"))

        _, context = self._gateway.coach_calls[-1]
        self.assertEqual("tantrums", context["topic"])

    def test_long_topic_and_age_range_are_clipped(self) -> None:
        orchestrator = self._make_orchestrator(age_range="a" * 80)
        orchestrator.start_session("t" * 150, greet=False)
        asyncio.run(orchestrator.send("Hello"))

        _, context = self._gateway.coach_calls[-1]
        self.assertEqual(100, len(context["topic"]))
        self.assertEqual(50, len(context["ageRange"]))

    def test_add_favorite_uses_active_session(self) -> None:
        asyncio.run(self._orchestrator.send("Bedtime help"))
        favorite = self._orchestrator.add_favorite(summary="Keep the routine short.")

        self.assertEqual(self._orchestrator.active_session.id, favorite.session_id)
        self.assertEqual("Bedtime help", favorite.title)
        self.assertEqual("Keep the routine short.", favorite.summary)
        self.assertEqual([favorite], self._orchestrator.list_favorites())

        self.assertTrue(self._orchestrator.remove_favorite(favorite.id))
        self.assertEqual([], self._orchestrator.list_favorites())

    def test_add_favorite_without_session_raises(self) -> None:
        with self.assertRaises(ValueError):
            self._orchestrator.add_favorite("Anything")
