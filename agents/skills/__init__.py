"""
agents/skills: the learned-skill library.

A skill is a named, parameterized procedure body the planner can call with
``executeSkill <name> <args...>``. Skills run through the same staging,
lint and restricted execution path as freshly generated code.
"""
