"""Feature modules of the SkillStack application."""
