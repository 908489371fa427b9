import json
import unittest

import pytest

from smartcommit.llm.response_parser import (
    FALLBACK_DESCRIPTION,
    HeuristicFallback,
    Parsed,
    Unparseable,
    parse_commit_response,
    parse_grouped_response,
    strip_code_fence,
)


class TestParseCommitResponse(unittest.TestCase):
    def test_json_object(self) -> None:
        text = json.dumps(
            {
                "summary": "feat(cli): add --radius option",
                "description": "Allow tuning the excerpt size.",
                "changes": ["add option", "thread value to extractor"],
                "type": "feat",
                "scope": "cli",
                "breaking": False,
                "issues": ["12", "#15"],
            }
        )
        result = parse_commit_response(text)
        self.assertIsInstance(result, Parsed)
        proposal = result.proposal
        self.assertEqual(proposal.summary, "feat(cli): add --radius option")
        self.assertEqual(proposal.scope, "cli")
        self.assertEqual(
            proposal.description,
            "Allow tuning the excerpt size.\n\n- add option\n- thread value to extractor\n\n"
            "Closes #12, Closes #15",
        )
        self.assertEqual(proposal.files, ())

    def test_fenced_json_with_selected_files(self) -> None:
        text = '```json\n{"summary": "fix: handle empty diff", "selectedFiles": ["a.py"]}\n```'
        result = parse_commit_response(text)
        self.assertIsInstance(result, Parsed)
        self.assertEqual(result.proposal.files, ("a.py",))
        self.assertEqual(result.proposal.type, "chore")

    def test_plain_text_falls_back_to_heuristic(self) -> None:
        text = "Here is JSON output:\n{\nfix(parser): handle empty hunks\nSkip hunks with zero length."
        result = parse_commit_response(text)
        self.assertIsInstance(result, HeuristicFallback)
        self.assertEqual(result.proposal.summary, "fix(parser): handle empty hunks")
        self.assertEqual(result.proposal.type, "fix")
        self.assertEqual(result.proposal.scope, "parser")
        self.assertEqual(result.proposal.description, "Skip hunks with zero length.")

    def test_heuristic_default_description(self) -> None:
        result = parse_commit_response("Update the build scripts")
        self.assertIsInstance(result, HeuristicFallback)
        self.assertEqual(result.proposal.description, FALLBACK_DESCRIPTION)

    def test_nothing_usable(self) -> None:
        self.assertIsInstance(parse_commit_response(""), Unparseable)
        self.assertIsInstance(parse_commit_response("{\n}\nok"), Unparseable)

    def test_json_without_summary_is_unparseable(self) -> None:
        self.assertIsInstance(parse_commit_response('{"description": "no summary"}'), Unparseable)


class TestParseGroupedResponse(unittest.TestCase):
    def test_keeps_order_and_drops_invalid_items(self) -> None:
        text = json.dumps(
            [
                {"summary": "feat: models", "files": ["models.py"], "type": "feat"},
                {"summary": "docs: readme"},
                {"description": "no summary", "files": ["x.py"]},
                "not an object",
                {"summary": "test: models", "files": ["test_models.py"]},
            ]
        )
        proposals = parse_grouped_response(text)
        self.assertEqual([p.summary for p in proposals], ["feat: models", "test: models"])
        self.assertEqual(proposals[0].files, ("models.py",))

    def test_not_an_array(self) -> None:
        self.assertIsNone(parse_grouped_response('{"summary": "x", "files": ["a"]}'))
        self.assertIsNone(parse_grouped_response("[]"))
        self.assertIsNone(parse_grouped_response("garbage"))


def test_strip_code_fence():
    assert strip_code_fence("```\n[1]\n```") == "[1]"
    assert strip_code_fence("  {}  ") == "{}"


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, True),
        (False, False),
        ("true", True),
        ("TRUE", True),
        ("false", False),
        ("no", False),
        (1, False),
        (None, False),
    ],
)
def test_breaking_flag_accepts_only_real_truth(value, expected):
    result = parse_commit_response(json.dumps({"summary": "feat: x", "breaking": value}))
    assert result.proposal.breaking is expected
