import json
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from plugin_catalog.declarations import (
    CatalogSourceError,
    collect_tags,
    load_catalog_source,
    parse_catalog_source,
    validate_catalog_payload,
)


def _valid_payload() -> dict:
    return {
        "plugins": {
            "use-auth0": {
                "npmPackage": "@envelop/auth0",
                "title": "Auth0",
                "icon": "auth0",
                "tags": ["security", "authentication"],
            },
            "use-sentry": {
                "title": "Sentry",
                "icon": "https://cdn.test/sentry.svg",
                "tags": ["monitoring", "security"],
            },
        },
        "categories": {"security": ["use-auth0"], "monitoring": ["use-sentry"]},
        "icons": {"auth0": {"src": "/icons/auth0.svg", "width": 48, "height": 48}},
    }


class TestValidateCatalogPayload(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(validate_catalog_payload(_valid_payload()), [])

    def test_missing_plugins(self):
        errors = validate_catalog_payload({"categories": {}})
        self.assertTrue(any("plugins must be" in e for e in errors))

    def test_bad_fields(self):
        payload = _valid_payload()
        payload["plugins"]["use-auth0"]["title"] = ""
        payload["plugins"]["use-sentry"]["tags"] = "monitoring"
        payload["icons"]["auth0"]["width"] = -1
        payload["categories"]["security"] = "use-auth0"
        errors = validate_catalog_payload(payload)
        self.assertTrue(any(".title is required" in e for e in errors))
        self.assertTrue(any(".tags must be" in e for e in errors))
        self.assertTrue(any(".width must be" in e for e in errors))
        self.assertTrue(any("categories['security']" in e for e in errors))


class TestParseCatalogSource(unittest.TestCase):
    def test_parse(self):
        source = parse_catalog_source(_valid_payload())
        ids = [d.identifier for d in source.declarations]
        self.assertEqual(ids, ["use-auth0", "use-sentry"])
        self.assertEqual(source.declarations[0].package, "@envelop/auth0")
        self.assertEqual(source.declarations[1].package, "use-sentry")
        self.assertEqual(source.declarations[0].tags, ("security", "authentication"))
        self.assertEqual(source.categories["security"], ("use-auth0",))
        with self.assertRaises(TypeError):
            source.categories["security"] = ("use-sentry",)  # type: ignore[index]
        self.assertEqual(source.icons["auth0"].width, 48)

    def test_invalid_raises_with_all_errors(self):
        payload = _valid_payload()
        payload["plugins"]["use-auth0"]["icon"] = ""
        payload["plugins"]["use-sentry"]["title"] = ""
        with self.assertRaises(CatalogSourceError) as ctx:
            parse_catalog_source(payload)
        self.assertEqual(len(ctx.exception.errors), 2)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_collect_tags_first_seen_order(self):
        source = parse_catalog_source(_valid_payload())
        self.assertEqual(collect_tags(source.declarations), ("security", "authentication", "monitoring"))


class TestLoadCatalogSource(unittest.TestCase):
    def test_duplicate_identifier_rejected(self):
        raw = (
            '{"plugins": {"dup": {"title": "One", "icon": "x"}, '
            '"dup": {"title": "Two", "icon": "y"}}}'
        )
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "plugins.json"
            path.write_text(raw, encoding="utf-8")
            with self.assertRaises(CatalogSourceError) as ctx:
                load_catalog_source(path)
        self.assertIn("duplicate key 'dup'", str(ctx.exception))

    def test_missing_file(self):
        with self.assertRaises(CatalogSourceError):
            load_catalog_source(Path("/nonexistent/plugins.json"))

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "plugins.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(CatalogSourceError):
                load_catalog_source(path)

    def test_example_file_loads(self):
        example = Path(__file__).resolve().parents[1] / "plugins.example.json"
        source = load_catalog_source(example)
        self.assertEqual(len(source.declarations), 3)


class TestValidateDeclarationsCli(unittest.TestCase):
    def _run(self, payload_text: str) -> subprocess.CompletedProcess:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "plugins.json"
            path.write_text(payload_text, encoding="utf-8")
            return subprocess.run(
                [sys.executable, "scripts/validate_declarations.py", str(path)],
                cwd=Path(__file__).resolve().parents[1],
                text=True,
                capture_output=True,
                check=False,
            )

    def test_cli_valid(self):
        result = self._run(json.dumps(_valid_payload()))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("passed", result.stdout)

    def test_cli_invalid(self):
        payload = _valid_payload()
        payload["plugins"]["use-auth0"]["title"] = ""
        result = self._run(json.dumps(payload))
        self.assertEqual(result.returncode, 2)
        self.assertIn("title is required", result.stdout)

    def test_cli_bad_json(self):
        result = self._run("[")
        self.assertEqual(result.returncode, 1)


if __name__ == "__main__":
    unittest.main()
