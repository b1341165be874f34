"""Task lifecycle: due states, countdowns, completion reconciliation and the kanban board."""
