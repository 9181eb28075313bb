"""Tests for the persistent skill library.

Run with::

    python -m pytest tests/test_skill_repository.py -v
"""
import json

from agents.skills.repository import Skill, SkillRepository

GREET = Skill("greet", "Greet a player by name", ["player"], "await world.chat('hi ' + player)")


def test_missing_library_loads_empty(tmp_path):
    repo = SkillRepository(tmp_path / "skills.json")
    assert repo.load() == 0
    assert len(repo) == 0


def test_add_persists_and_reloads(tmp_path):
    path = tmp_path / "skills.json"
    repo = SkillRepository(path)
    assert repo.add(GREET) is True

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk == [{
        "name": "greet",
        "description": "Greet a player by name",
        "parameters": ["player"],
        "code": "await world.chat('hi ' + player)",
    }]

    other = SkillRepository(path)
    assert other.load() == 1
    assert other.get("greet").signature() == "greet(player)"


def test_duplicate_and_invalid_skills_are_rejected(tmp_path):
    repo = SkillRepository(tmp_path / "skills.json")
    repo.add(GREET)
    assert repo.add(GREET) is False
    assert repo.add(Skill("bad name", "x", [], "pass")) is False
    assert repo.add(Skill("noCode", "x", [], "   ")) is False
    assert repo.add(Skill("dupParams", "x", ["a", "a"], "pass")) is False
    assert repo.add(Skill("private", "x", ["_a"], "pass")) is False
    assert len(repo) == 1


def test_remove_rewrites_file(tmp_path):
    path = tmp_path / "skills.json"
    repo = SkillRepository(path)
    repo.add(GREET)
    assert repo.remove("greet") is True
    assert repo.remove("greet") is False
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_load_skips_malformed_entries(tmp_path):
    path = tmp_path / "skills.json"
    path.write_text(json.dumps([
        {"name": "ok", "description": "fine", "parameters": [], "code": "pass"},
        {"name": "missingCode", "description": "no code"},
        {"name": "", "description": "blank name", "code": "pass"},
        "not an object",
    ]), encoding="utf-8")
    repo = SkillRepository(path)
    assert repo.load() == 1
    assert [s.name for s in repo.get_all()] == ["ok"]


def test_load_rejects_non_array(tmp_path):
    path = tmp_path / "skills.json"
    path.write_text('{"name": "x"}', encoding="utf-8")
    assert SkillRepository(path).load() == 0
