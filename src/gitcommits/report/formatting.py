"""Text rendering and filtering of collected commits."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from gitcommits.models import FIELD_NAMES, CommitRecord

REPOSITORY_FIELDS = ("Repository", "RepoFolder")


def render_line(commit: CommitRecord, template: str, *, blank_repository: bool = False) -> str:
    """Fill ``{Field}`` placeholders of ``template`` with the commit's values."""
    values = commit.as_dict()
    line = template
    for name in FIELD_NAMES:
        value = values[name]
        if blank_repository and name in REPOSITORY_FIELDS:
            value = " " * len(value)
        line = line.replace("{" + name + "}", value)
    return line


def format_commits(
    commits: Sequence[CommitRecord],
    template: str,
    *,
    show_repeated_repo_names: bool = True,
) -> str:
    """Render every commit with ``template``, one per line.

    Commits are grouped by repository (first appearance order, original
    order inside each group). Without ``show_repeated_repo_names`` only the
    first line of a group shows the repository name; later lines pad it
    with spaces so columns stay aligned.
    """
    if not commits or not template:
        return ""

    groups: Dict[str, List[CommitRecord]] = {}
    for commit in commits:
        groups.setdefault(commit.repo_path, []).append(commit)

    lines: List[str] = []
    for group in groups.values():
        for index, commit in enumerate(group):
            blank = not show_repeated_repo_names and index > 0
            lines.append(render_line(commit, template, blank_repository=blank))
    return "\n".join(lines) + "\n"


def select_fields(commit: CommitRecord, fields: Iterable[str] | None = None) -> Dict[str, str]:
    """Mapping of the requested fields; unknown names are ignored."""
    values = commit.as_dict()
    if not fields:
        return values
    wanted = set(fields)
    return {name: values[name] for name in FIELD_NAMES if name in wanted}


def search_commits(commits: Iterable[CommitRecord], text: str | None) -> List[CommitRecord]:
    """Case-insensitive substring search over each commit's fields.

    The full repository path is left out, as it usually shares a prefix
    with every other result.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return list(commits)
    return [
        commit
        for commit in commits
        if any(
            needle in value.lower()
            for name, value in commit.as_dict().items()
            if name != "RepoPath"
        )
    ]
