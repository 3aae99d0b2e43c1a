"""
ByteBasket Default Dietary Restriction Catalog

Seed data for the dietary_restrictions table. Allergens always exclude
on a match; lifestyle, religious and medical restrictions exclude only
when the user picks "strict".
"""

from typing import Any, Dict, List

# ============================================================================
# DEFAULT RESTRICTIONS
# ============================================================================

DEFAULT_RESTRICTIONS: List[Dict[str, Any]] = [
    # ===== ALLERGENS =====
    {
        "name": "Gluten-Free",
        "category": "allergen",
        "description": "Cannot consume gluten-containing products like wheat, barley, rye",
        "is_allergen": True,
        "severity_levels": ["mild", "strict"],
        "icon": "gluten-free",
    },
    {
        "name": "Dairy-Free",
        "category": "allergen",
        "description": "Cannot consume dairy products including milk, cheese, butter",
        "is_allergen": True,
        "severity_levels": ["mild", "strict"],
        "icon": "no-dairy",
    },
    {
        "name": "Nut-Free",
        "category": "allergen",
        "description": "Cannot consume nuts or nut products - severe allergy risk",
        "is_allergen": True,
        "severity_levels": ["strict"],
        "icon": "no-nuts",
    },
    {
        "name": "Egg-Free",
        "category": "allergen",
        "description": "Cannot consume eggs or egg-containing products",
        "is_allergen": True,
        "severity_levels": ["mild", "strict"],
        "icon": "no-eggs",
    },
    {
        "name": "Soy-Free",
        "category": "allergen",
        "description": "Cannot consume soy products or soy derivatives",
        "is_allergen": True,
        "severity_levels": ["mild", "strict"],
        "icon": "no-soy",
    },
    {
        "name": "Shellfish-Free",
        "category": "allergen",
        "description": "Cannot consume shellfish - severe allergy risk",
        "is_allergen": True,
        "severity_levels": ["strict"],
        "icon": "no-shellfish",
    },

    # ===== LIFESTYLE =====
    {
        "name": "Vegan",
        "category": "lifestyle",
        "description": "Plant-based diet, no animal products including dairy, eggs, honey",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "vegan",
    },
    {
        "name": "Vegetarian",
        "category": "lifestyle",
        "description": "No meat, but may include dairy and eggs",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "vegetarian",
    },
    {
        "name": "Pescatarian",
        "category": "lifestyle",
        "description": "Vegetarian diet that includes fish and seafood",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "fish",
    },
    {
        "name": "Keto-Friendly",
        "category": "lifestyle",
        "description": "Very low carb, high fat diet",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "keto",
    },

    # ===== RELIGIOUS =====
    {
        "name": "Kosher",
        "category": "religious",
        "description": "Follows Jewish dietary laws",
        "is_allergen": False,
        "severity_levels": ["strict"],
        "icon": "kosher",
    },
    {
        "name": "Halal",
        "category": "religious",
        "description": "Follows Islamic dietary laws",
        "is_allergen": False,
        "severity_levels": ["strict"],
        "icon": "halal",
    },

    # ===== MEDICAL =====
    {
        "name": "Low-Sodium",
        "category": "medical",
        "description": "Requires low sodium intake for health reasons",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "low-sodium",
    },
    {
        "name": "Diabetic-Friendly",
        "category": "medical",
        "description": "Low sugar, suitable for diabetics",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "diabetic",
    },
    {
        "name": "Heart-Healthy",
        "category": "medical",
        "description": "Low cholesterol, low saturated fat diet",
        "is_allergen": False,
        "severity_levels": ["mild", "strict"],
        "icon": "heart",
    },
]
