"""
agents/actions: built-in parametrized actions the agent can execute.

Every action exposes ``execute(world, game_data, args, state) -> str``.
Errors never escape ``execute``; they come back as descriptive text.

Available actions:
    collectBlock            Gather blocks, checking current inventory first
    moveToPosition          Walk to coordinates
    lookAround              Describe nearby entities and the block underfoot
    craftItem               Craft by hand or at a nearby crafting table
    attackEntity            Attack the nearest matching entity
    placeBlock              Place a block from inventory
    sleep / wakeUp          Use a nearby bed
    dropItem                Toss items from inventory
    askForHelp              Ask the operator in chat
    generateAndExecuteCode  Delegate a free-form task to the code generator
"""
