"""Route ordering, scheduling and orchestration."""
