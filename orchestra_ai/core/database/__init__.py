"""SQLModel base, engine helpers and entities backing the SQL checkpoint store."""
