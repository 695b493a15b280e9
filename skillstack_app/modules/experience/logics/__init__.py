"""Pure reward-engine logic: no database, no Flask."""
