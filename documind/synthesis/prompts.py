"""Prompt templates for documentation synthesis."""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional, Sequence

from ..models import ApiEntry

README_FILE_LIMIT = 20
QUALITY_CONTENT_LIMIT = 2000

COMMENT_CATEGORIES: tuple[str, ...] = ("improvement", "explanation", "warning")
ISSUE_TYPES: tuple[str, ...] = ("error", "warning", "suggestion")

README_SYSTEM_PROMPT = (
    "You are a senior developer documentation writer. Stay grounded in the repository facts "
    "you are given and never invent commands or tools."
)

COMMENTS_SYSTEM_PROMPT = """You are a code review expert. Analyze the provided code and suggest meaningful comments.
Return a JSON object of the form:
{"suggestions": [{"line": number, "comment": "suggestion text", "type": "improvement|explanation|warning"}]}

Focus on:
- Complex logic that needs explanation
- Potential improvements
- Best practice violations
- Performance concerns
- Security issues

Only suggest valuable comments, not obvious ones."""

QUALITY_SYSTEM_PROMPT = """You are a code quality expert. Analyze the provided files and return a quality assessment.
Return JSON in this format:
{
  "score": number (0-100),
  "issues": [{"file": "filename", "line": number, "type": "error|warning|suggestion", "message": "description"}],
  "suggestions": ["improvement suggestion 1", "improvement suggestion 2"]
}

Evaluate:
- Code structure and organization
- Best practices adherence
- Potential bugs or security issues
- Performance considerations
- Maintainability"""


def readme_prompt(
    name: str, description: Optional[str], files: Sequence[str], structure: Any
) -> str:
    listed = ", ".join(files[:README_FILE_LIMIT])
    if len(files) > README_FILE_LIMIT:
        listed += "..."
    return f"""Generate a comprehensive README.md file for a GitHub repository with the following information:

Repository: {name}
Description: {description or 'No description provided'}
Files: {listed}

Structure:
{json.dumps(structure, indent=2)}

Create a professional README that includes:
1. Project title and description
2. Installation instructions
3. Usage examples
4. Features list
5. Contributing guidelines
6. License information

Make it engaging and informative for developers."""


def api_docs_prompt(entries: Iterable[ApiEntry]) -> str:
    blocks = []
    for entry in entries:
        blocks.append(
            f"Function: {entry.name}\n"
            f"Parameters: {', '.join(entry.parameters)}\n"
            f"Return Type: {entry.return_type or 'unknown'}\n"
            f"Description: {entry.description or 'No description'}"
        )
    listing = "\n\n".join(blocks)
    return f"""Generate comprehensive API documentation for the following functions:

{listing}

Create detailed API documentation in markdown format that includes:
1. Function signatures
2. Parameter descriptions
3. Return value descriptions
4. Usage examples
5. Error handling information

Make it developer-friendly and comprehensive."""


def comments_prompt(source_text: str, file_name: str) -> str:
    return f"""Analyze this {file_name} file and suggest code comments:

```
{source_text}
```"""


def quality_prompt(files: Iterable[tuple[str, str]]) -> str:
    blocks = []
    for name, content in files:
        excerpt = content[:QUALITY_CONTENT_LIMIT]
        if len(content) > QUALITY_CONTENT_LIMIT:
            excerpt += "..."
        blocks.append(f"File: {name}\n```\n{excerpt}\n```")
    return "Assess the quality of these files:\n\n" + "\n\n".join(blocks)


def banner_prompt(name: str, description: Optional[str]) -> str:
    about = f"The project is about: {description}\n" if description else ""
    return (
        f'Create a professional, modern banner image for a software project called "{name}".\n'
        f"{about}"
        "Style: clean, modern tech aesthetic with subtle gradients and professional typography. "
        "Include the project name prominently. Make it suitable for a GitHub repository header."
    )


__all__ = [
    "COMMENTS_SYSTEM_PROMPT",
    "COMMENT_CATEGORIES",
    "ISSUE_TYPES",
    "QUALITY_SYSTEM_PROMPT",
    "README_SYSTEM_PROMPT",
    "api_docs_prompt",
    "banner_prompt",
    "comments_prompt",
    "quality_prompt",
    "readme_prompt",
]
