"""Personal-best records, tags, rank memory and the banana counter."""
