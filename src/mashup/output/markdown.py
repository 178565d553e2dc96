"""Markdown builder — renders a MashupArtifact to a structured Markdown document."""

from __future__ import annotations

from mashup.schemas.mashup import FileStructure, MashupArtifact

_AUTH_LABELS = {"none": "No auth", "apikey": "API key", "oauth": "OAuth"}


def render_markdown(artifact: MashupArtifact) -> str:
    """Render a MashupArtifact into a Markdown string."""
    idea = artifact.idea
    sections: list[str] = []

    # Title
    sections.append(f"# {idea.app_name}\n")
    sections.append(f"*Generated: {artifact.created_at.isoformat(timespec='seconds')}*\n")
    if idea.description:
        sections.append(f"{idea.description}\n")

    # Features
    if idea.features:
        sections.append("## Features\n")
        for feature in idea.features:
            sections.append(f"- {feature}")
        sections.append("")

    if idea.rationale:
        sections.append("## Why These APIs\n")
        sections.append(f"{idea.rationale}\n")

    # APIs
    sections.append("## APIs\n")
    sections.append("| API | Category | Auth | CORS | Docs |")
    sections.append("|-----|----------|------|------|------|")
    for api in idea.apis:
        cors = "yes" if api.cors_compatible else "no"
        docs = f"[docs]({api.documentation_url})" if api.documentation_url else ""
        sections.append(
            f"| {_cell(api.name)} (`{api.id}`) | {_cell(api.category)} "
            f"| {_AUTH_LABELS.get(api.auth_type, api.auth_type)} | {cors} | {docs} |"
        )
    sections.append("")

    # Needs Mock Mode when the scaffold can't supply credentials
    mocked = [api.name for api in idea.apis if api.auth_type != "none"]
    if mocked:
        sections.append(
            f"> Mock Mode: {', '.join(mocked)} need credentials; the scaffold "
            "ships sample data for them until you add your own keys.\n"
        )

    # UI layout
    layout = artifact.ui_layout
    if layout.screens:
        sections.append("## Screens\n")
        for screen in layout.screens:
            line = f"- **{screen.name}**"
            if screen.description:
                line += f": {screen.description}"
            if screen.components:
                line += f" ({', '.join(screen.components)})"
            sections.append(line)
        sections.append("")

    if layout.components:
        sections.append("## Components\n")
        for comp in layout.components:
            sections.append(f"- `{comp.type}`: {comp.purpose} (source: {comp.api_source})")
        sections.append("")

    if layout.interaction_flow.steps:
        sections.append("## Interaction Flow\n")
        for i, step in enumerate(layout.interaction_flow.steps, 1):
            sections.append(f"{i}. {step.from_} → {step.to}: {step.action}")
        sections.append("")

    # Code preview
    preview = artifact.code_preview
    sections.append("## Project Structure\n")
    sections.append("```")
    sections.extend(_render_tree(preview.structure))
    sections.append("```\n")

    if preview.backend_snippet:
        sections.append("### Backend\n")
        sections.append(f"```typescript\n{preview.backend_snippet}\n```\n")
    if preview.frontend_snippet:
        sections.append("### Frontend\n")
        sections.append(f"```tsx\n{preview.frontend_snippet}\n```\n")

    return "\n".join(sections)


def _cell(text: str) -> str:
    """Escape pipes so a value can't break the table."""
    return text.replace("|", "\\|")


def _render_tree(node: FileStructure, depth: int = 0) -> list[str]:
    suffix = "/" if node.type == "directory" else ""
    lines = [f"{'  ' * depth}{node.name}{suffix}"]
    for child in node.children or []:
        lines.extend(_render_tree(child, depth + 1))
    return lines
