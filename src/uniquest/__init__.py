"""UniQuest learning path API."""
