import json
import os
import shutil
import unittest
from pathlib import Path
from unittest.mock import patch
from uuid import uuid4

from grandparent_coach.app_config import load_json_config, parse_app_config, resolve_runtime_env


class ParseAppConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        app = parse_app_config({})
        self.assertEqual("openai", app.provider_name)
        self.assertEqual("gpt-4o-mini", app.model)
        self.assertEqual(600, app.max_tokens)
        self.assertEqual(10, app.rate_limit_max_requests)
        self.assertEqual(60.0, app.rate_limit_window_seconds)
        self.assertEqual("http://localhost:3000", app.gateway_url)
        self.assertEqual(3, app.free_tier_limit)
        self.assertFalse(app.is_pro)
        self.assertIsNone(app.system_prompt_path)
        self.assertIsNone(app.age_range)

    def test_overrides(self) -> None:
        app = parse_app_config(
            {
                "Provider": " Anthropic ",
                "GatewayPort": "8080",
                "IsPro": "yes",
                "AgeRange": "6-8",
                "CallerId": "  ",
                "SystemPromptPath": "prompts/coach.txt",
            }
        )
        self.assertEqual("anthropic", app.provider_name)
        self.assertEqual(8080, app.gateway_port)
        self.assertTrue(app.is_pro)
        self.assertEqual("6-8", app.age_range)
        self.assertEqual("local-device", app.caller_id)
        self.assertEqual("prompts/coach.txt", app.system_prompt_path)


class RuntimeEnvTests(unittest.TestCase):
    def test_openai_token_fallback(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_TOKEN": "tok", "COACH_GATEWAY_URL": "http://gw"}, clear=True):
            env = resolve_runtime_env("openai")
        self.assertEqual("tok", env.provider_api_key)
        self.assertEqual("OPENAI_API_KEY", env.provider_env_var)
        self.assertEqual("http://gw", env.gateway_url_override)
        self.assertIsNone(env.provider_base_url)

    def test_anthropic_key(self) -> None:
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "ant"}, clear=True):
            env = resolve_runtime_env("anthropic")
        self.assertEqual("ant", env.provider_api_key)
        self.assertEqual("ANTHROPIC_API_KEY", env.provider_env_var)


class LoadJsonConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = Path(__file__).resolve().parents[1] / ".test-artifacts" / f"config-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_reads_file(self) -> None:
        path = self._tmp_dir / "config.json"
        path.write_text(json.dumps({"Model": "gpt-test", "IsPro": "maybe"}), encoding="utf-8")
        app = parse_app_config(load_json_config(path))
        self.assertEqual("gpt-test", app.model)
        self.assertFalse(app.is_pro)

    def test_missing_file_is_empty(self) -> None:
        self.assertEqual({}, load_json_config(self._tmp_dir / "absent.json"))
