from __future__ import annotations

import json
from pathlib import Path

import pytest

from documind.errors import SynthesisError
from documind.models import ApiEntry
from documind.synthesis import DocumentationSynthesizer
from tests._fixtures.fakes import ScriptedRunner


def test_synthesize_readme_without_banner() -> None:
    runner = ScriptedRunner("# Demo\n\nA demo project.")
    synthesizer = DocumentationSynthesizer(runner)

    result = synthesizer.synthesize_readme("demo", None, ["src/app.py"], [{"path": "src"}])

    assert result.content == "# Demo\n\nA demo project."
    assert result.banner_path is None
    prompt = runner.calls[0]["prompt"]
    assert "Repository: demo" in prompt
    assert "No description provided" in prompt
    assert "src/app.py" in prompt


def test_synthesize_readme_prepends_generated_banner(tmp_path: Path) -> None:
    runner = ScriptedRunner("# My Repo")
    prompts = []

    def banner(prompt: str) -> bytes:
        prompts.append(prompt)
        return b"\x89PNG"

    synthesizer = DocumentationSynthesizer(runner, assets_dir=tmp_path, banner_generator=banner)

    result = synthesizer.synthesize_readme("my-repo", "Tools", [], [])

    banner_file = tmp_path / "my_repo_banner.png"
    assert banner_file.read_bytes() == b"\x89PNG"
    assert result.banner_path == str(banner_file)
    assert result.content == "![my-repo Banner](/api/images/my_repo_banner.png)\n\n# My Repo"
    assert "my-repo" in prompts[0]


def test_synthesize_readme_survives_banner_failure(tmp_path: Path) -> None:
    def banner(prompt: str) -> bytes:
        raise RuntimeError("image service down")

    synthesizer = DocumentationSynthesizer(
        ScriptedRunner("# Demo"), assets_dir=tmp_path, banner_generator=banner
    )

    result = synthesizer.synthesize_readme("demo", None, [], [])

    assert result.content == "# Demo"
    assert result.banner_path is None


def test_synthesize_api_docs_lists_signatures() -> None:
    runner = ScriptedRunner("## add")
    synthesizer = DocumentationSynthesizer(runner)

    text = synthesizer.synthesize_api_docs([ApiEntry(name="add", parameters=["a", "b"])])

    assert text == "## add"
    assert "add" in runner.calls[0]["prompt"]
    assert "a, b" in runner.calls[0]["prompt"]


def test_synthesize_comments_parses_fenced_json_and_normalizes_categories() -> None:
    payload = {
        "suggestions": [
            {"line": 3, "comment": "Explain the loop", "type": "explanation"},
            {"line": "7", "comment": "Cache this", "type": "performance"},
            {"line": 9, "comment": "   "},
            {"comment": "no line"},
        ]
    }
    runner = ScriptedRunner(f"```json\n{json.dumps(payload)}\n```")
    synthesizer = DocumentationSynthesizer(runner)

    suggestions = synthesizer.synthesize_comments("x = 1\n", "app.py")

    assert [(item.line, item.comment, item.category) for item in suggestions] == [
        (3, "Explain the loop", "explanation"),
        (7, "Cache this", "explanation"),
    ]
    assert runner.calls[0]["json_mode"] is True


def test_synthesize_comments_accepts_bare_list() -> None:
    runner = ScriptedRunner('[{"line": 1, "comment": "Guard against None", "type": "warning"}]')

    suggestions = DocumentationSynthesizer(runner).synthesize_comments("x", "a.js")

    assert [item.to_dict() for item in suggestions] == [
        {"line": 1, "comment": "Guard against None", "category": "warning"}
    ]


def test_synthesize_quality_report_clamps_score() -> None:
    payload = {
        "score": 140,
        "issues": [
            {"file": "a.py", "line": 4, "type": "error", "message": "Undefined name"},
            {"file": "b.py", "type": "nit", "message": "Long line"},
            {"file": "c.py"},
        ],
        "suggestions": ["Add tests", 5],
    }
    runner = ScriptedRunner(json.dumps(payload))

    report = DocumentationSynthesizer(runner).synthesize_quality_report([("a.py", "x = 1")])

    assert report.score == 100
    assert [(issue.file, issue.line, issue.type) for issue in report.issues] == [
        ("a.py", 4, "error"),
        ("b.py", None, "suggestion"),
    ]
    assert report.suggestions == ["Add tests"]


def test_synthesize_quality_report_requires_score() -> None:
    runner = ScriptedRunner('{"issues": []}')

    with pytest.raises(SynthesisError, match="missing score"):
        DocumentationSynthesizer(runner).synthesize_quality_report([])


def test_invalid_json_raises_synthesis_error() -> None:
    runner = ScriptedRunner("I think the code looks fine.")

    with pytest.raises(SynthesisError, match="invalid JSON"):
        DocumentationSynthesizer(runner).synthesize_quality_report([("a.py", "x")])


def test_runner_failure_is_wrapped() -> None:
    class FailingRunner:
        def run(self, prompt, *, system=None, json_mode=False):
            raise ConnectionError("socket closed")

    with pytest.raises(SynthesisError, match="Failed to generate API documentation: socket closed"):
        DocumentationSynthesizer(FailingRunner()).synthesize_api_docs([])


def test_empty_response_is_an_error() -> None:
    with pytest.raises(SynthesisError, match="empty response"):
        DocumentationSynthesizer(ScriptedRunner("   ")).synthesize_readme("demo", None, [], [])
