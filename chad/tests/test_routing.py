import unittest

from chad.routing import derive_project_path, extract_cwd, is_home_path, route_path


class ExtractCwdTests(unittest.TestCase):
    def test_returns_last_cwd_occurrence(self) -> None:
        content = (
            '{"type": "user", "cwd": "/srv/ai-jen-5402"}\n'
            '{"type": "assistant", "cwd": "/srv/ai-chad-5401/work"}\n'
        )
        self.assertEqual(extract_cwd(content), "/srv/ai-chad-5401/work")

    def test_tolerates_whitespace_around_colon(self) -> None:
        self.assertEqual(extract_cwd('"cwd"  :   "/opt/studio/app"'), "/opt/studio/app")
        self.assertEqual(extract_cwd('"cwd":"/opt/app"'), "/opt/app")

    def test_escaped_backslashes_become_forward_slashes(self) -> None:
        content = '{"cwd": "D:\\\\work\\\\kodiack-dashboard-5500"}'
        self.assertEqual(extract_cwd(content), "D:/work/kodiack-dashboard-5500")

    def test_returns_none_without_cwd(self) -> None:
        self.assertIsNone(extract_cwd("no working directory here"))
        self.assertIsNone(extract_cwd(""))
        self.assertIsNone(extract_cwd(None))


class RoutePathTests(unittest.TestCase):
    def test_slug_with_port(self) -> None:
        identity = route_path("/srv/ai-chad-5401/work")
        assert identity is not None
        self.assertEqual(identity.slug, "ai-chad-5401")
        self.assertEqual(identity.port, 5401)
        self.assertEqual(identity.reason, "path-derived")
        self.assertEqual(identity.evidence, "cwd:/srv/ai-chad-5401/work")

    def test_normalizes_case_and_separators(self) -> None:
        identity = route_path("D:\\Work\\Kodiack-Dashboard-5500\\src")
        assert identity is not None
        self.assertEqual(identity.slug, "kodiack-dashboard-5500")
        self.assertEqual(identity.port, 5500)

    def test_port_outside_range_is_rejected(self) -> None:
        self.assertIsNone(route_path("/srv/app-3999/src"))
        self.assertIsNone(route_path("/srv/app-10000/src"))

    def test_three_or_six_digit_runs_are_not_ports(self) -> None:
        self.assertIsNone(route_path("/srv/app-540/src"))
        self.assertIsNone(route_path("/srv/app-540100/src"))

    def test_later_in_range_token_wins_over_rejected_one(self) -> None:
        identity = route_path("/srv/build-2024/ai-jen-5402/src")
        assert identity is not None
        self.assertEqual(identity.slug, "ai-jen-5402")
        self.assertEqual(identity.port, 5402)

    def test_studio_segment(self) -> None:
        identity = route_path("/opt/Studio/NextBid-Portal/src")
        assert identity is not None
        self.assertEqual(identity.slug, "nextbid-portal")
        self.assertIsNone(identity.port)

    def test_projects_segment(self) -> None:
        identity = route_path("/var/projects/acme/src")
        assert identity is not None
        self.assertEqual(identity.slug, "acme")
        self.assertIsNone(identity.port)

    def test_studio_rule_precedes_projects_rule(self) -> None:
        identity = route_path("/x/projects/beta/studio/alpha")
        assert identity is not None
        self.assertEqual(identity.slug, "alpha")

    def test_unroutable_path(self) -> None:
        self.assertIsNone(route_path("/usr/local/bin"))
        self.assertIsNone(route_path(""))
        self.assertIsNone(route_path(None))


class HomePathTests(unittest.TestCase):
    def test_home_markers(self) -> None:
        for path in (
            "/home/bob/project-5401/x",
            "/HOME/bob",
            "/root/app",
            "/root",
            "C:\\Users\\bob\\code",
            "c:/users/bob/code",
        ):
            with self.subTest(path=path):
                self.assertTrue(is_home_path(path))

    def test_non_home_paths(self) -> None:
        for path in ("/srv/ai-chad-5401", "/opt/studio/app", "D:/work/app", "", None):
            with self.subTest(path=path):
                self.assertFalse(is_home_path(path))


class DeriveProjectPathTests(unittest.TestCase):
    def test_converts_encoded_directory_names(self) -> None:
        self.assertEqual(derive_project_path("C--Projects-foo/abc.jsonl"), "C:/Projects/foo")

    def test_single_segment_and_missing_values(self) -> None:
        self.assertEqual(derive_project_path("terminal"), "terminal")
        self.assertEqual(derive_project_path(None), "unknown")


if __name__ == "__main__":
    unittest.main()
