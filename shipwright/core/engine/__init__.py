"""Deploy engine — version gate, diff, artifacts, stages and stack lifecycle."""
