"""Learning path progress engine: quests, points, levels and achievements."""
