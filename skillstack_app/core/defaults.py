"""
Centralized default reward constants for SkillStack.

These values are the fallback whenever a setting is missing from the
``reward_settings`` table, or when the table cannot be read at all.
"""

DEFAULT_REWARD_SETTINGS = {
    # --- XP per item, by difficulty ---
    'quiz_xp': {
        'basic': 10,
        'intermediate': 20,
        'advanced': 30,
        'expert': 50,
    },
    'course_xp': {
        'basic': 15,
        'intermediate': 25,
        'advanced': 35,
        'expert': 55,
    },

    # --- Event-level bonuses ---
    'bonus_xp': {
        'accuracy_80': 20,
        'accuracy_100': 30,
        'course_completion': 50,
    },

    # --- XP needed per level, by scope ---
    'level_thresholds': {
        'overall': 1000,
        'main_category': 500,
        'industry_category': 1000,
        'industry_subcategory': 500,
    },

    # --- Skill points ---
    'skp': {
        'correct': 10,
        'incorrect': 2,
        'perfect_bonus': 50,
        'daily_streak': 10,
        'ten_day_streak': 100,
    },
}

SETTING_DESCRIPTIONS = {
    ('bonus_xp', 'accuracy_80'): 'Bonus XP for a quiz answered with at least 80% accuracy.',
    ('bonus_xp', 'accuracy_100'): 'Bonus XP for a quiz answered with 100% accuracy.',
    ('bonus_xp', 'course_completion'): 'Bonus XP for finishing a course session at 100%.',
    ('level_thresholds', 'overall'): 'XP per overall level.',
    ('level_thresholds', 'main_category'): 'XP per level in a main category.',
    ('level_thresholds', 'industry_category'): 'XP per level in an industry category.',
    ('level_thresholds', 'industry_subcategory'): 'XP per level in a subcategory.',
    ('skp', 'correct'): 'SKP per correct answer.',
    ('skp', 'incorrect'): 'SKP per incorrect answer.',
    ('skp', 'perfect_bonus'): 'SKP bonus for an all-correct quiz.',
    ('skp', 'daily_streak'): 'SKP per day of the current learning streak.',
    ('skp', 'ten_day_streak'): 'Extra SKP for every full ten days of streak.',
}

SETTING_CATEGORIES = tuple(DEFAULT_REWARD_SETTINGS.keys())
