"""
Game constants for Pumpkin Patch.
All timers are real wall-clock minutes, evaluated lazily on read.
"""

# Crop definitions: growth_minutes = effective minutes to reach maturity.
# A crop is "growing" once half of growth_minutes has elapsed.
CROPS = {
    "pumpkin": {
        "label": "Pumpkin",
        "seed_counter": "seeds",
        "harvest_counter": "pumpkins",
        "growth_minutes": 60,
    },
    "apple": {
        "label": "Apple",
        "seed_counter": "apple_seeds",
        "harvest_counter": "apples",
        "growth_minutes": 15,
    },
}

# Fertilizer multiplies elapsed minutes
FERTILIZER_MULTIPLIER = 2

# Pie definitions
PIES = {
    "pumpkin": {
        "ingredient": "pumpkins",
        "pie_counter": "pies",
        "bake_minutes": 30,
    },
    "apple": {
        "ingredient": "apples",
        "pie_counter": "apple_pies",
        "bake_minutes": 15,
    },
}

# Marketplace. Keys are Player attribute names; API item names are the
# camelCase aliases ("appleSeeds", "applePies").
BUY_PRICES = {
    "seeds": 10,
    "apple_seeds": 5,
    "fertilizer": 10,
    "tools": 50,
}

SELL_PRICES = {
    "seeds": 8,
    "apple_seeds": 4,
    "pumpkins": 25,
    "apples": 15,
    "pies": 40,
    "apple_pies": 35,
}

# Feature unlocks
KITCHEN_UNLOCK_LEVEL = 2
APPLE_UNLOCK_LEVEL = 2

# Minimum player level to buy an item
ITEM_LEVEL_REQUIREMENTS = {
    "apple_seeds": APPLE_UNLOCK_LEVEL,
}

MAX_PURCHASE_QUANTITY = 100

# Experience rewards per action
XP_REWARDS = {
    "plant": 5,
    "harvest": 10,
    "bake": 15,
    "expand_field": 25,
    "expand_kitchen": 20,
}

# XP curve: cumulative requirement for level L is
# sum(floor(BASE * (NUM/DEN)^(i-2)) for i in 2..L), i.e. a 1.2x growth rate.
XP_BASE = 100
XP_GROWTH_NUMERATOR = 6
XP_GROWTH_DENOMINATOR = 5
MAX_XP_LEVEL = 10

# Manual level unlocks past MAX_XP_LEVEL cost tools:
# TOOLS_UNLOCK_BASE * 2^(target - MAX_XP_LEVEL - 1)
TOOLS_UNLOCK_BASE = 5

# Field expansion: cost = FIELD_EXPANSION_BASE * 2^(new_size - 4)
MIN_FIELD_SIZE = 3
MAX_FIELD_SIZE = 10
FIELD_EXPANSION_BASE = 50

# Kitchen expansion: cost = KITCHEN_EXPANSION_BASE * 2^(new_slots - 2)
MIN_KITCHEN_SLOTS = 1
MAX_KITCHEN_SLOTS = 5
KITCHEN_EXPANSION_BASE = 100

# Daily reward
DAILY_COINS = 5
DAILY_COOLDOWN_HOURS = 24

# Starting state
STARTING_PLAYER = {
    "coins": 150,
    "seeds": 25,
    "pumpkins": 8,
}

# Customer orders
MAX_PENDING_ORDERS = 3
# Completed and expired orders kept per player, newest first
ORDER_HISTORY_LIMIT = 10

CUSTOMER_NAMES = [
    "Farmer Joe",
    "Granny Smith",
    "Chef Pierre",
    "Little Timmy",
    "Mayor Hopkins",
    "Baker Betty",
]

ORDER_TEMPLATES = [
    {
        "id": "pumpkin_pickup",
        "title": "Pumpkin Pickup",
        "weight": 5,
        "min_level": 1,
        "time_limit_minutes": 60,
        "required": {"pumpkins": 2},
        "rewards": {"coins": 70, "experience": 10},
    },
    {
        "id": "pumpkin_bulk",
        "title": "Harvest Festival Crate",
        "weight": 3,
        "min_level": 1,
        "time_limit_minutes": 120,
        "required": {"pumpkins": 5},
        "rewards": {"coins": 160, "experience": 25, "bonus": {"seeds": 3}},
    },
    {
        "id": "apple_basket",
        "title": "Apple Basket",
        "weight": 4,
        "min_level": 2,
        "time_limit_minutes": 45,
        "required": {"apples": 3},
        "rewards": {"coins": 60, "experience": 10},
    },
    {
        "id": "pie_lover",
        "title": "Pie Lover",
        "weight": 3,
        "min_level": 2,
        "time_limit_minutes": 90,
        "required": {"pies": 1},
        "rewards": {"coins": 80, "experience": 20, "bonus": {"seeds": 2}},
    },
    {
        "id": "apple_pie_party",
        "title": "Apple Pie Party",
        "weight": 2,
        "min_level": 2,
        "time_limit_minutes": 120,
        "required": {"apple_pies": 2},
        "rewards": {"coins": 120, "experience": 30, "bonus": {"fertilizer": 1}},
    },
    {
        "id": "bakery_bundle",
        "title": "Bakery Bundle",
        "weight": 1,
        "min_level": 3,
        "time_limit_minutes": 180,
        "required": {"pumpkins": 2, "pies": 1, "apple_pies": 1},
        "rewards": {"coins": 220, "experience": 45, "bonus": {"tools": 1}},
    },
]

# Seasonal challenges
CHALLENGE_BATCH_SIZE = 3
CHALLENGE_DURATION_HOURS = 24
# Completed and failed challenges kept per player, newest first
CHALLENGE_HISTORY_LIMIT = 9

CHALLENGE_TEMPLATES = [
    {
        "id": "plant_pumpkins",
        "type": "plant",
        "title": "Busy Sower",
        "description": "Plant {target} seeds",
        "target": 10,
        "difficulty": 1,
        "rewards": {"coins": 50, "seeds": 5},
    },
    {
        "id": "harvest_crops",
        "type": "harvest",
        "title": "Harvest Moon",
        "description": "Harvest {target} crops",
        "target": 8,
        "difficulty": 2,
        "rewards": {"coins": 80, "fertilizer": 2},
    },
    {
        "id": "bake_pies",
        "type": "bake",
        "title": "Pie Master",
        "description": "Bake {target} pies",
        "target": 4,
        "difficulty": 3,
        "rewards": {"coins": 120, "pumpkins": 3},
    },
    {
        "id": "earn_coins",
        "type": "earn",
        "title": "Market Mogul",
        "description": "Earn {target} coins at the market",
        "target": 300,
        "difficulty": 3,
        "rewards": {"tools": 1, "experience": 40},
    },
    {
        "id": "expand_farm",
        "type": "expand",
        "title": "Land Baron",
        "description": "Expand your field or kitchen {target} time(s)",
        "target": 1,
        "difficulty": 4,
        "rewards": {"coins": 100, "tools": 1},
    },
    {
        "id": "harvest_marathon",
        "type": "harvest",
        "title": "Harvest Marathon",
        "description": "Harvest {target} crops",
        "target": 25,
        "difficulty": 5,
        "rewards": {"coins": 250, "apples": 5, "experience": 60},
    },
]

# Month -> season, used to label challenge batches
SEASONS_BY_MONTH = {
    12: "winter", 1: "winter", 2: "winter",
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "autumn", 10: "autumn", 11: "autumn",
}
