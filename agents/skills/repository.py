"""
Persistent catalog of named procedures the planner can invoke with
``executeSkill <name> <args...>``.

The library file is a JSON array of ``{name, description, parameters, code}``
objects, rewritten wholesale after every add or remove.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from core.logging_utils import log_json


@dataclass
class Skill:
    name: str
    description: str
    parameters: List[str] = field(default_factory=list)
    code: str = ""

    def signature(self) -> str:
        return f"{self.name}({', '.join(self.parameters)})"

    def problems(self) -> List[str]:
        """Reasons this skill cannot be stored; empty when valid."""
        issues = []
        if not isinstance(self.name, str) or not self.name.strip():
            issues.append("name must be a non-empty string")
        elif not self.name.isidentifier():
            issues.append(f"name {self.name!r} must be an identifier")
        if not isinstance(self.description, str) or not self.description.strip():
            issues.append("description must be a non-empty string")
        if not isinstance(self.code, str) or not self.code.strip():
            issues.append("code must be a non-empty string")
        if not isinstance(self.parameters, list):
            issues.append("parameters must be a list")
        else:
            for param in self.parameters:
                if not isinstance(param, str) or not param.isidentifier() or param.startswith("_"):
                    issues.append(f"parameter {param!r} is not a valid name")
            if len(set(self.parameters)) != len(self.parameters):
                issues.append("parameter names must be unique")
        return issues


class SkillRepository:
    def __init__(self, path):
        self.path = Path(path)
        self._skills: Dict[str, Skill] = {}

    def load(self) -> int:
        """Read the library file; returns the number of skills loaded."""
        self._skills = {}
        if not self.path.exists():
            log_json("INFO", "skills_fresh_start", details={"path": str(self.path)})
            return 0
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log_json("WARN", "skills_load_failed", details={"path": str(self.path), "error": str(exc)})
            return 0
        if not isinstance(data, list):
            log_json("WARN", "skills_load_failed", details={"path": str(self.path), "error": "expected a JSON array"})
            return 0
        for raw in data:
            try:
                skill = Skill(
                    name=raw["name"],
                    description=raw["description"],
                    parameters=list(raw.get("parameters") or []),
                    code=raw["code"],
                )
            except (KeyError, TypeError) as exc:
                log_json("WARN", "skill_entry_skipped", details={"error": str(exc)})
                continue
            problems = skill.problems()
            if problems:
                log_json("WARN", "skill_entry_skipped", details={"skill": skill.name, "problems": problems})
                continue
            self._skills[skill.name] = skill
        log_json("INFO", "skills_loaded", details={"count": len(self._skills)})
        return len(self._skills)

    def save(self) -> None:
        payload = json.dumps([asdict(s) for s in self._skills.values()], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            log_json("ERROR", "skills_save_failed", details={"path": str(self.path), "error": str(exc)})

    def add(self, skill: Skill) -> bool:
        """Store *skill*; False when it is invalid or the name is taken."""
        problems = skill.problems()
        if problems:
            log_json("WARN", "skill_rejected", details={"skill": skill.name, "problems": problems})
            return False
        if skill.name in self._skills:
            log_json("WARN", "skill_exists", details={"skill": skill.name})
            return False
        self._skills[skill.name] = skill
        self.save()
        log_json("INFO", "skill_added", details={"skill": skill.name})
        return True

    def remove(self, name: str) -> bool:
        if name not in self._skills:
            return False
        del self._skills[name]
        self.save()
        log_json("INFO", "skill_removed", details={"skill": name})
        return True

    def get(self, name: str) -> Optional[Skill]:
        return self._skills.get(name)

    def get_all(self) -> List[Skill]:
        return list(self._skills.values())

    def __len__(self) -> int:
        return len(self._skills)
