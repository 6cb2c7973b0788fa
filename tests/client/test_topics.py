import unittest

from grandparent_coach.client.topics import (
    FALLBACK_TITLE,
    clarifying_prompt_for,
    generate_title,
    known_topics,
)


class TopicTests(unittest.TestCase):
    def test_known_topics_have_prompts(self) -> None:
        self.assertEqual(["bedtime", "mealtime", "screen_time", "tantrums"], known_topics())
        for topic in known_topics():
            self.assertIsNotNone(clarifying_prompt_for(topic))

    def test_topic_names_are_normalised(self) -> None:
        self.assertEqual(clarifying_prompt_for("screen_time"), clarifying_prompt_for("Screen Time"))
        self.assertEqual(clarifying_prompt_for("screen_time"), clarifying_prompt_for("screen-time"))

    def test_unknown_topic_has_no_prompt(self) -> None:
        self.assertIsNone(clarifying_prompt_for("potty training"))
        self.assertIsNone(clarifying_prompt_for(None))


class TitleTests(unittest.TestCase):
    def test_short_text_used_as_is(self) -> None:
        self.assertEqual("Help with tantrums", generate_title("  Help   with tantrums "))

    def test_long_text_truncated(self) -> None:
        self.assertEqual("one two three four five six…", generate_title("one two three four five six seven"))

    def test_blank_text_falls_back(self) -> None:
        self.assertEqual(FALLBACK_TITLE, generate_title("   "))

    def test_long_words_are_cut_to_a_storable_title(self) -> None:
        title = generate_title("y" * 4000)
        self.assertEqual(100, len(title))
        self.assertTrue(title.endswith("…"))
