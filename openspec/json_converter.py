"""Serialize parsed specs and changes to JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .change_parser import ChangeParser
from .config import FORMAT_VERSION
from .errors import OpenSpecError
from .markdown_parser import MarkdownParser
from .models import Change, Requirement, Spec
from .validator import extract_name_from_path


def dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


class JsonConverter:
    """Read a spec or proposal from disk and render it as pretty JSON.

    String content is copied verbatim into the output; the only escaping
    applied is the standard JSON string escaping.
    """

    def parse_spec_file(self, path: Union[str, Path]) -> Spec:
        path = Path(path)
        content = path.read_text(encoding="utf-8")
        return MarkdownParser(content).parse_spec(extract_name_from_path(path))

    def parse_change_file(self, path: Union[str, Path]) -> Change:
        path = Path(path)
        content = path.read_text(encoding="utf-8")
        parser = ChangeParser(content, change_dir=path.parent)
        return parser.parse_change_with_deltas(extract_name_from_path(path))

    def spec_to_dict(self, path: Union[str, Path]) -> Dict[str, Any]:
        data = self.parse_spec_file(path).to_dict()
        data["metadata"] = {**data["metadata"], "sourcePath": str(path)}
        return data

    def change_to_dict(self, path: Union[str, Path]) -> Dict[str, Any]:
        data = self.parse_change_file(path).to_dict()
        data["metadata"] = {**data["metadata"], "sourcePath": str(path)}
        return data

    def convert_spec_to_json(self, path: Union[str, Path]) -> str:
        return dumps(self.spec_to_dict(path))

    def convert_change_to_json(self, path: Union[str, Path]) -> str:
        return dumps(self.change_to_dict(path))


def filter_requirements(
    requirements: List[Requirement],
    requirements_only: bool = False,
    no_scenarios: bool = False,
    requirement_index: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Narrow a requirement list for display.

    ``requirement_index`` is 1-based. ``requirements_only`` drops scenarios
    like ``no_scenarios`` and cannot be combined with an index.
    """
    if requirements_only and requirement_index is not None:
        raise OpenSpecError("Options --requirements and --requirement cannot be used together")

    selected = requirements
    if requirement_index is not None:
        if requirement_index < 1 or requirement_index > len(requirements):
            raise OpenSpecError(f"Requirement {requirement_index} not found")
        selected = [requirements[requirement_index - 1]]

    include_scenarios = not (requirements_only or no_scenarios)
    return [
        {
            "text": requirement.text,
            "scenarios": [scenario.to_dict() for scenario in requirement.scenarios] if include_scenarios else [],
        }
        for requirement in selected
    ]


def spec_show_payload(
    spec_id: str,
    spec: Spec,
    requirements_only: bool = False,
    no_scenarios: bool = False,
    requirement_index: Optional[int] = None,
) -> Dict[str, Any]:
    requirements = filter_requirements(spec.requirements, requirements_only, no_scenarios, requirement_index)
    return {
        "id": spec_id,
        "title": spec.name,
        "overview": spec.overview,
        "requirementCount": len(requirements),
        "requirements": requirements,
        "metadata": dict(spec.metadata or {"version": FORMAT_VERSION, "format": "openspec"}),
    }


def change_show_payload(change_id: str, title: str, change: Change) -> Dict[str, Any]:
    return {
        "id": change_id,
        "title": title,
        "deltaCount": len(change.deltas),
        "deltas": [delta.to_dict() for delta in change.deltas],
    }
