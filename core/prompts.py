import json

from core.memory_types import StructuredMemory
from memory.store import summarize_long_term, summarize_spatial

MINECRAFT_KNOWLEDGE = """# Minecraft Basic Knowledge
- Wood logs must be collected first, then crafted into planks (4 planks per log)
- Planks are crafted into a crafting table (4 planks in a 2x2 square)
- Wooden tools require planks + sticks (sticks are made from 2 planks vertically)
- Crafting sequence: logs -> planks -> sticks -> tools
- Stone and ores drop nothing unless mined with a pickaxe; iron ore needs at least a stone pickaxe
- Pickaxes, furnaces and most tools need a crafting table placed within 4 blocks
- Seeds from tall grass can be planted on farmland to grow wheat; 3 wheat make bread
- Apples occasionally drop from oak leaves when broken"""

PLANNER_PROMPT = """{knowledge}
You are a meticulous and efficient Minecraft agent planner. Your task is to create a concise, step-by-step plan to achieve a given goal, considering the current state, available actions and past experiences.

Current State:
{state_summary}

Goal: {goal}

Available Actions:
{action_descriptions}
{skill_descriptions}- generateAndExecuteCode <task description string>: Use ONLY for complex tasks not covered by other actions
- askForHelp <question>: Use if stuck, goal unclear, resources missing after trying, or plan fails repeatedly

Planning Guidelines:
1.  Analyze State: consider inventory, surroundings, health, hunger, time, memory and the last action's result. Check inventory before planning to collect items you already have. If health is critical (< 5), prioritize immediate survival.
2.  Decompose Goal: break the goal into small, sequential steps using ONLY the available actions.
3.  Tool Check & Crafting: follow the crafting sequence logs -> planks -> sticks -> tools/crafting table. Before mining stone or ores, make sure a pickaxe of the right tier is in inventory; if not, plan the full sequence to craft it first.
4.  Prerequisites: have logs before crafting planks. Have a crafting table nearby (within 4 blocks) for table recipes such as pickaxes. If crafting failed for a missing table, the next plan MUST start with `placeBlock crafting_table`.
5.  Spatial Awareness: use the spatial memory summary and known locations; plan `moveToPosition` to known blocks when they seem reachable.
6.  Vertical Movement: to get out or reach the surface, prefer digging upwards with `collectBlock` or pillaring with `placeBlock` over chains of short moves. Use `lookAround` to reassess.
7.  Resource Gathering: gather all raw materials for a multi-step craft before starting to craft.
8.  Efficiency: choose the most direct sequence. Avoid long sequences of small `moveToPosition` steps.
9.  Error Handling: if the last action result is a failure, the new plan MUST address its cause. Do not repeat the exact failed action immediately.
10. Skill Usage: use `executeSkill` for stored skills and `generateAndExecuteCode` for procedures the basic actions cannot express.
11. Stuck Detection: if the same action keeps failing or no progress is made, use `askForHelp` or try a significantly different approach.
12. Safety: if health is below 10 or food below 6, plan to find food first (`lookAround`, `attackEntity` an animal, `collectBlock` a crop). Avoid combat when health is low.
13. Output Format: output ONLY the planned actions, one per line. No explanations, numbering, comments or introductory text. Each line must be a valid action call, e.g. `collectBlock oak_log 5` or `craftItem crafting_table 1`.

Plan:"""

NEXT_ACTION_PROMPT = """{knowledge}
You control a Minecraft agent that is following a plan.

Current State:
{state_summary}

Goal: {goal}

Available Actions:
{action_descriptions}
{skill_descriptions}- generateAndExecuteCode <task description string>
- askForHelp <question>

Reply with exactly ONE action line to execute next, usually the first remaining plan step unless the last result shows it cannot work. No explanation, no numbering, no code fences."""

CODER_SYSTEM_PROMPT = """You are an expert Minecraft bot programmer. Write Python code that a bot runs to accomplish one task.
- The code is the body of `async def main(world, log, Vec3):`. You may write the whole function or only its body.
- Use ONLY these world functions:
{capabilities}
- `log(*values)` records output; `Vec3(x, y, z)` builds positions (methods: offset, plus, minus, scaled, distance_to, floored); `await wait(seconds)` pauses.
- Available builtins: {builtins}.
- No imports, no file, network or process access, no eval/exec, no classes, no names starting with double underscores.
- Use `await` for every world function.
- Return a short string summarizing the result, or describing the failure. If the task is impossible with these functions, return a message explaining why.
- Your code MUST be enclosed in a single ```python code block.
Current State:
{state_summary}"""


def format_state_summary(state, recent_limit: int = 5) -> str:
    """Render the parts of an ``AgentState`` a language model needs."""
    s = state.surroundings
    memory: StructuredMemory = state.memory
    recent = " | ".join(
        f"{r.action} -> {r.result[:50]}" for r in memory.recent_actions[-recent_limit:]
    ) or "None"
    plan = " -> ".join(list(state.current_plan or ())[:5]) or "None"
    return "\n".join([
        f"Current Health: {s.health}",
        f"Current Hunger: {s.food}",
        f"Time of Day: {s.time_of_day} ({'day' if s.is_day else 'night'})",
        f"Current Biome: {s.biome}",
        f"Position: {s.position}",
        f"Inventory: {json.dumps(dict(state.inventory), sort_keys=True)}",
        f"Nearby Blocks (sample): {', '.join(s.nearby_blocks[:10]) or 'None'}",
        f"Nearby Entities: {', '.join(s.nearby_entities) or 'None'}",
        f"Recent Actions (last {recent_limit}): {recent}",
        f"Long-term Memory Summary: {summarize_long_term(memory)}",
        f"Spatial Memory Summary: {summarize_spatial(memory)}",
        f"Previous Plan Steps (if any): {plan}",
        f"Last Action: {state.last_action or 'None'}",
        f"Last Action Result: {state.last_action_result or 'None'}",
    ])


def format_skill_descriptions(skills) -> str:
    """``executeSkill`` lines for each stored skill, or an empty string."""
    lines = [
        f"- executeSkill {skill.name} {' '.join(f'<{p}>' for p in skill.parameters)}".rstrip()
        + f": {skill.description}"
        for skill in skills
    ]
    return "".join(line + "\n" for line in lines)
