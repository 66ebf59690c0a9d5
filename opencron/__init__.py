"""opencron — cron-style shell command scheduler."""
