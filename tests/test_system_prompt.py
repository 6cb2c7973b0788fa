import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from grandparent_coach.system_prompt import (
    BASE_COACH_PROMPT,
    build_coach_system_prompt,
    build_summary_prompt,
    format_transcript,
    load_base_prompt,
)


class CoachPromptTests(unittest.TestCase):
    def test_no_context_returns_base(self) -> None:
        self.assertEqual("BASE", build_coach_system_prompt("BASE", {}))

    def test_context_fields_are_rendered(self) -> None:
        prompt = build_coach_system_prompt(
            "BASE",
            {
                "topic": "bedtime",
                "age_range": "3-5",
                "situation_type": "overnight stay",
                "attempted": "stories",
                "urgency": False,
                "user_notes": "only at our house",
            },
        )
        self.assertEqual(
            "BASE\n\nContext:\n"
            "Topic: bedtime\n"
            "Age range: 3-5\n"
            "Situation type: overnight stay\n"
            "Already tried: stories\n"
            "Urgent: no\n"
            "Notes: only at our house",
            prompt,
        )

    def test_history_is_appended(self) -> None:
        prompt = build_coach_system_prompt("BASE", {"conversation_history": "[Meals] user: picky"})
        self.assertNotIn("Context:", prompt)
        self.assertTrue(prompt.endswith("[Meals] user: picky"))

    def test_base_prompt_has_no_medical_advice_rule(self) -> None:
        self.assertIn("licensed professional", BASE_COACH_PROMPT)


class SummaryPromptTests(unittest.TestCase):
    def test_transcript_labels_and_skips_system(self) -> None:
        transcript = format_transcript(
            [
                {"role": "system", "content": "hidden"},
                {"role": "user", "content": "Bedtime is hard"},
                {"role": "assistant", "content": "Try a routine"},
            ]
        )
        self.assertEqual("Grandparent: Bedtime is hard\n\nCoach: Try a routine", transcript)

    def test_default_audience(self) -> None:
        prompt = build_summary_prompt("Grandparent: hi")
        self.assertIn("for a grandparent", prompt)
        self.assertTrue(prompt.endswith("CONVERSATION:\n\nGrandparent: hi"))


class LoadBasePromptTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = Path(__file__).resolve().parents[1] / ".test-artifacts" / f"prompt-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_reads_override_file(self) -> None:
        path = self._tmp_dir / "prompt.txt"
        path.write_text("Custom coach prompt\n", encoding="utf-8")
        self.assertEqual("Custom coach prompt", load_base_prompt(str(path)))

    def test_missing_file_falls_back(self) -> None:
        self.assertEqual(BASE_COACH_PROMPT, load_base_prompt(str(self._tmp_dir / "missing.txt")))
        self.assertEqual(BASE_COACH_PROMPT, load_base_prompt(None))
