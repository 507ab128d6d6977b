"""Pure types of the bulk runner. Zero I/O."""
