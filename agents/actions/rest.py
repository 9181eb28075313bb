from agents.actions.base import ActionBase

BED_SEARCH_DISTANCE = 10


class SleepAction(ActionBase):
    name = "sleep"
    usage = "sleep"
    description = "Sleep in a bed within 10 blocks (night only)."

    async def _execute(self, world, game_data, args, state) -> str:
        bed = await world.find_block(lambda b: game_data.is_bed(b.name), BED_SEARCH_DISTANCE)
        if bed is None:
            return "Failed to sleep: no bed found nearby."
        if world.has_pathfinder:
            await world.move_to(bed.position, reach=2)
        try:
            await world.sleep(bed)
        except Exception as exc:  # pylint: disable=broad-except
            text = str(exc).lower()
            if "too far" in text:
                return "Failed to sleep: Bed is too far away."
            if "not possible" in text or "not night" in text:
                return "Failed to sleep: It is not night time or the bed is obstructed."
            return f"Failed to sleep: {exc}"
        return "Sleeping in bed"


class WakeUpAction(ActionBase):
    name = "wakeUp"
    usage = "wakeUp"
    description = "Get out of bed."

    async def _execute(self, world, game_data, args, state) -> str:
        try:
            await world.wake()
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to wake up: {exc}"
        return "Woke up"
