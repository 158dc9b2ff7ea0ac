"""Prompt templates for organization negotiations."""

from __future__ import annotations

from typing import List

from .models import OrganizationContext

REJECTED_PREVIEW_LIMIT = 5

ORGANIZATION_SYSTEM_PROMPT = """You are a file organization assistant. You study a set of files and work out, together with the user, a folder structure that fits what those files actually are.

**What you do:**
- Read file names, extensions, sizes, and dates to infer what each file contains
- Spot series, versions, dates, projects, and collections that belong together
- Invent categories that suit these particular files instead of generic file-type buckets
- Keep naming and folder layout identical for files of the same kind
- Take user feedback and clarifications into account as the conversation goes on
- Ask questions only when the answer would change your suggestions

**Phases:**
- **Analysis**: discover content types, patterns, and candidate categories
- **Conversation**: discuss findings and refine the plan with the user
- **Organization**: produce one concrete destination for every file
- **Complete**: the plan has been accepted

**Rules:**
- Every file must appear in discoveredCategories; use an "Unknown" category when nothing fits
- Every file must receive exactly one suggestion when suggestions are requested
- Once a naming pattern is set for a category, apply it to every file in that category
- Files that form a coding project keep their project structure together

**Response format:**
Answer conversationally and include a JSON object matching the schema requested in each message."""

_ANALYSIS_SCHEMA = """```json
{
  "discoveredCategories": {
    "CategoryName": ["file1.ext", "file2.ext"],
    "AnotherCategory": ["file3.ext"]
  },
  "reasoning": "Overall organization strategy",
  "clarificationNeeded": {
    "questions": ["Question 1?", "Question 2?"],
    "reason": "Why the answers are needed"
  }
}
```"""

_SUGGESTIONS_SCHEMA = """```json
{
  "suggestions": [
    {
      "fileName": "exact_filename.ext",
      "suggestedPath": "Category/Subcategory/filename.ext",
      "reason": "Short explanation",
      "confidence": 0.9,
      "category": "CategoryName"
    }
  ],
  "reasoning": "Overall organization strategy"
}
```"""

_CONSISTENCY_RULES = """**CONSISTENCY REQUIREMENTS:**
- **Media**: once a naming pattern is chosen for a category, every file of that type follows it exactly
- **TV shows**: if one episode goes to "TV Shows/Series/Season X/Series SXXEXX Title", all episodes use that layout
- **Movies**: use one pattern for every movie, for example "Movies/Title (Year)"
- **Coding projects**: files that belong to the same project stay together with their structure intact
- **Same type, same format**: files of the same type share folder structure and naming"""


def format_file_size(size: int) -> str:
    """Return ``size`` bytes as a human-readable string with one decimal.

    Examples:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f} {units[index]}"


def _file_lines(context: OrganizationContext, *, detailed: bool) -> List[str]:
    lines = []
    for index, descriptor in enumerate(context.files, start=1):
        if detailed:
            extension = descriptor.extension or "no extension"
            modified = descriptor.modified.date().isoformat()
            lines.append(
                f"{index}. {descriptor.name} ({extension}, "
                f"{format_file_size(descriptor.size)}, modified: {modified})"
            )
        else:
            lines.append(f"{index}. {descriptor.name}")
    return lines


def _clarification_lines(context: OrganizationContext) -> List[str]:
    return [
        f"- Q: {clarification.question}\n  A: {clarification.answer}"
        for clarification in context.clarifications
    ]


def build_context_summary(context: OrganizationContext) -> str:
    """Summarise what the negotiation has learned so far."""
    sections = [
        "**Conversation Context:**",
        f"- User Intent: {context.intent}",
        f"- Phase: {context.phase.value}",
        f"- Base Directory: {context.base_directory}",
    ]

    if context.discovered_categories:
        sections.append(f"- Discovered Categories: {', '.join(context.discovered_categories)}")

    rejected = context.rejected_suggestions
    if rejected:
        recent = [suggestion.suggested_path for suggestion in rejected[-REJECTED_PREVIEW_LIMIT:]]
        more = "..." if len(rejected) > REJECTED_PREVIEW_LIMIT else ""
        sections.append(f"- Rejected Approaches: {', '.join(recent)}{more}")

    if context.approved_patterns:
        sections.append(f"- Approved Patterns: {', '.join(context.approved_patterns)}")

    if context.clarifications:
        sections.append(f"- User Clarifications: {len(context.clarifications)} provided")

    return "\n".join(sections)


def build_analysis_prompt(context: OrganizationContext) -> str:
    """Return the opening prompt asking the model to discover categories."""
    parts = [
        "**INITIAL FILE ANALYSIS REQUEST**",
        f"**User's Intent:** {context.intent}",
        f"**Base Directory:** {context.base_directory}",
        f"**Files to Analyze ({len(context.files)} total):**\n"
        + "\n".join(_file_lines(context, detailed=True)),
    ]
    if context.pattern_hints:
        parts.append("**PATTERN ANALYSIS HINTS:**\n" + "\n".join(context.pattern_hints))
    if context.clarifications:
        parts.append("**ANSWERS TO YOUR EARLIER QUESTIONS:**\n" + "\n".join(_clarification_lines(context)))

    parts.append(
        "**ANALYSIS TASK:**\n"
        "1. Work out what kinds of content these files are from their names, patterns, and extensions.\n"
        "2. Point out naming patterns, series, versions, or dates that relate files to each other.\n"
        "3. Propose categories that suit these specific files.\n"
        "4. Share initial ideas for a folder structure.\n"
        "5. Ask clarifying questions only if you cannot proceed without the answers.\n"
        '6. List every file under a category, using "Unknown" for files that fit nowhere.'
    )
    parts.append("Explain your analysis, then include a JSON block with your findings:\n" + _ANALYSIS_SCHEMA)
    return "\n\n".join(parts)


def build_final_prompt(context: OrganizationContext) -> str:
    """Return the prompt asking for exactly one suggestion per file."""
    total = len(context.files)
    parts = [
        "**FINAL ORGANIZATION SUGGESTIONS REQUEST**",
        build_context_summary(context),
        "**FILES TO ORGANIZE:**\n" + "\n".join(_file_lines(context, detailed=False)),
    ]
    if context.clarifications:
        parts.append("**USER CLARIFICATIONS:**\n" + "\n".join(_clarification_lines(context)))

    parts.append(
        f"Based on our conversation, provide final organization suggestions for ALL {total} files."
    )
    parts.append(_CONSISTENCY_RULES)
    parts.append(
        "**REQUIREMENTS:**\n"
        f"- Provide exactly {total} suggestions, one per file, using the exact file names above\n"
        "- Use the categories and patterns we discussed\n"
        "- Do not repeat rejected approaches\n"
        "- Keep naming and structure identical within each category"
    )
    parts.append("**RESPONSE FORMAT:**\n" + _SUGGESTIONS_SCHEMA)
    return "\n\n".join(parts)


def build_feedback_message(
    feedback: str | None,
    specific_issues: List[str],
    rejected_paths: List[str],
) -> str:
    """Turn a rejection into a conversational message for the model.

    Args:
        feedback: Free-text feedback; used verbatim when present.
        specific_issues: Short issue descriptions.
        rejected_paths: Suggested paths the user rejected; at most three are quoted.

    Returns:
        str: Message to send as the next user turn.
    """
    parts = [feedback.strip()] if feedback and feedback.strip() else [
        "I have some issues with the organization suggestions."
    ]
    if specific_issues:
        parts.append(f"Specifically: {', '.join(specific_issues)}.")
    if rejected_paths:
        parts.append(f"I don't like how these files are organized: {', '.join(rejected_paths[:3])}.")
    return " ".join(parts)


def build_clarification_followup(questions: List[str], answers: List[str]) -> str:
    """Return a message relaying the user's answers back to the model."""
    lines = ["Here are my answers to your questions:"]
    for question, answer in zip(questions, answers):
        if answer.strip():
            lines.append(f"- {question} {answer.strip()}")
    return "\n".join(lines)


__all__ = [
    "ORGANIZATION_SYSTEM_PROMPT",
    "build_analysis_prompt",
    "build_clarification_followup",
    "build_context_summary",
    "build_feedback_message",
    "build_final_prompt",
    "format_file_size",
]
