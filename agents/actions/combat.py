from agents.actions.base import ActionBase

ATTACK_SEARCH_DISTANCE = 10


class AttackEntityAction(ActionBase):
    name = "attackEntity"
    usage = "attackEntity <entity_name>"
    description = "Attack the nearest entity whose name matches."

    async def _execute(self, world, game_data, args, state) -> str:
        if not args:
            return "Failed to attack: no entity name specified."
        wanted = args[0].lower()
        me = await world.get_self()
        candidates = [
            e for e in await world.get_entities()
            if e.id != me.id
            and e.position.distance_to(me.position) <= ATTACK_SEARCH_DISTANCE
            and any(wanted in (n or "").lower() for n in (e.name, e.username, e.display_name, e.kind))
        ]
        if not candidates:
            return f"Failed to attack: entity '{args[0]}' not found nearby."
        target = min(candidates, key=lambda e: e.position.distance_to(me.position))

        if world.has_pathfinder:
            await world.move_to(target.position, reach=2)
        try:
            await world.attack(target)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to attack {target.label}: {exc}"
        return f"Attacked {target.label}"
