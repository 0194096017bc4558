import tempfile
import unittest
from pathlib import Path

from chad.identity import is_low_trust_slug, normalize_slug, resolve_identity, sniff_content
from chad.models import SessionWindow
from chad.routing import extract_cwd
from chad.routing_rules import DEFAULT_ROUTING_RULES, RoutingRules, load_routing_rules


def _window(content: str = "", **overrides) -> SessionWindow:
    payload = {
        "window_start": 1_771_236_000_000,
        "source_type": "transcript",
        "session_file": "C--Projects-misc/abc.jsonl",
        "content": content,
        "record_ids": [1],
    }
    payload.update(overrides)
    return SessionWindow(**payload)


class SlugNormalizerTests(unittest.TestCase):
    def test_alias_maps_to_canonical_slug(self) -> None:
        self.assertEqual(normalize_slug("ai-jen"), "ai-jen-5402")
        self.assertEqual(normalize_slug("terminal-server"), "terminal-server-5400")

    def test_unknown_and_canonical_slugs_pass_through(self) -> None:
        self.assertEqual(normalize_slug("custom-app"), "custom-app")
        self.assertEqual(normalize_slug("ai-jen-5402"), "ai-jen-5402")
        self.assertIsNone(normalize_slug(None))

    def test_normalization_is_idempotent(self) -> None:
        for alias in DEFAULT_ROUTING_RULES.slug_aliases:
            with self.subTest(alias=alias):
                once = normalize_slug(alias)
                self.assertEqual(normalize_slug(once), once)

    def test_low_trust_set(self) -> None:
        for slug in ("ai-team", "terminal", "unassigned", "unknown", "default", "studio", "www"):
            with self.subTest(slug=slug):
                self.assertTrue(is_low_trust_slug(slug))
        self.assertFalse(is_low_trust_slug("ai-jen"))
        self.assertFalse(is_low_trust_slug(None))


class ContentSnifferTests(unittest.TestCase):
    def test_first_pattern_in_table_order_wins(self) -> None:
        identity = sniff_content("session.jsonl", None, "talked to ai-chad and then AI-JEN")
        assert identity is not None
        self.assertEqual(identity.slug, "ai-jen-5402")
        self.assertEqual(identity.evidence, "content:ai-jen")
        self.assertEqual(identity.reason, "content-derived")
        self.assertIsNone(identity.port)

    def test_session_file_and_project_folder_are_searched(self) -> None:
        by_file = sniff_content("kodiack-dashboard/abc.jsonl", None, "")
        by_folder = sniff_content("abc.jsonl", "/srv/NextBid/api", "")
        assert by_file is not None and by_folder is not None
        self.assertEqual(by_file.slug, "kodiack-dashboard-5500")
        self.assertEqual(by_file.evidence, "content:kodiack-dashboard")
        self.assertEqual(by_folder.slug, "nextbid")

    def test_only_leading_content_is_searched(self) -> None:
        self.assertIsNone(sniff_content("a.jsonl", None, "x" * 5000 + "ai-jen"))
        self.assertIsNotNone(sniff_content("a.jsonl", None, "x" * 4994 + "ai-jen"))

    def test_no_match(self) -> None:
        self.assertIsNone(sniff_content("a.jsonl", None, "nothing to see"))


class ResolveIdentityTests(unittest.TestCase):
    def test_low_trust_label_with_home_cwd_and_no_hint_is_unassigned(self) -> None:
        window = _window('"cwd":"/home/bob/project-5401/x"\n', project_slug="ai-team")

        with self.assertLogs("chad.identity", level="WARNING") as logs:
            identity = resolve_identity(window, extract_cwd(window.content))

        self.assertEqual(identity.slug, "unassigned")
        self.assertIsNone(identity.port)
        self.assertEqual(identity.reason, "unresolved")
        self.assertTrue(any("low-trust" in line for line in logs.output))

    def test_cwd_with_slug_port_is_path_derived(self) -> None:
        content = 'one "cwd": "/srv/ai-chad-5401/work"\ntwo\n'
        identity = resolve_identity(_window(content), extract_cwd(content))

        self.assertEqual(identity.slug, "ai-chad-5401")
        self.assertEqual(identity.port, 5401)
        self.assertEqual(identity.reason, "path-derived")

    def test_trusted_label_is_normalized_and_keeps_window_port(self) -> None:
        identity = resolve_identity(_window(project_slug="ai-jen", team_port=5402), None)
        self.assertEqual(identity.slug, "ai-jen-5402")
        self.assertEqual(identity.port, 5402)
        self.assertEqual(identity.reason, "trusted-label")

        custom = resolve_identity(_window(project_slug="custom-app"), "/srv/ai-chad-5401")
        self.assertEqual(custom.slug, "custom-app")
        self.assertIsNone(custom.port)

    def test_low_trust_label_falls_through_to_cwd(self) -> None:
        identity = resolve_identity(_window(project_slug="terminal"), "/srv/ai-susan-5403/x")
        self.assertEqual(identity.slug, "ai-susan-5403")
        self.assertEqual(identity.reason, "path-derived")

    def test_home_cwd_never_drives_path_routing(self) -> None:
        content = '"cwd": "/home/bob/ai-susan-5403"'
        identity = resolve_identity(_window(content), extract_cwd(content))
        self.assertEqual(identity.reason, "content-derived")
        self.assertEqual(identity.slug, "ai-susan-5403")
        self.assertIsNone(identity.port)

    def test_unroutable_cwd_falls_through_to_content(self) -> None:
        identity = resolve_identity(_window("working on nextbid"), "/usr/local/bin")
        self.assertEqual(identity.slug, "nextbid")
        self.assertEqual(identity.reason, "content-derived")

    def test_low_trust_labels_are_never_final(self) -> None:
        for slug in sorted(DEFAULT_ROUTING_RULES.low_trust_slugs):
            with self.subTest(slug=slug):
                identity = resolve_identity(_window("plain text", project_slug=slug), None)
                self.assertEqual(identity.slug, "unassigned")

    def test_custom_rules_change_trust_and_aliases(self) -> None:
        rules = RoutingRules(
            low_trust_slugs=frozenset({"ai-jen"}),
            slug_aliases={"ai-chad": "ai-chad-9001"},
            content_patterns=(("ai-chad", "ai-chad-9001"),),
        )
        identity = resolve_identity(_window("ai-chad was here", project_slug="ai-jen"), None, rules)
        self.assertEqual(identity.slug, "ai-chad-9001")
        self.assertEqual(identity.reason, "content-derived")


class RoutingRulesLoaderTests(unittest.TestCase):
    def _write(self, text: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8")
        with tmp:
            tmp.write(text)
        self.addCleanup(Path(tmp.name).unlink)
        return Path(tmp.name)

    def test_empty_or_missing_path_uses_built_in_tables(self) -> None:
        self.assertIs(load_routing_rules(""), DEFAULT_ROUTING_RULES)
        self.assertIs(load_routing_rules("/nonexistent/chad-rules.yaml"), DEFAULT_ROUTING_RULES)

    def test_present_keys_replace_tables(self) -> None:
        path = self._write(
            "low_trust_slugs: [ai-team, scratch]\n"
            "content_patterns:\n"
            "  - {match: Widget-Shop, slug: widget-shop-6100}\n"
        )
        rules = load_routing_rules(path)

        self.assertEqual(rules.low_trust_slugs, frozenset({"ai-team", "scratch"}))
        self.assertEqual(rules.content_patterns, (("widget-shop", "widget-shop-6100"),))
        self.assertEqual(rules.slug_aliases, DEFAULT_ROUTING_RULES.slug_aliases)

    def test_malformed_documents_raise(self) -> None:
        for text in ("- just\n- a list\n", "slug_aliases: [a, b]\n", "content_patterns:\n  - {match: x}\n"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    load_routing_rules(self._write(text))


if __name__ == "__main__":
    unittest.main()
