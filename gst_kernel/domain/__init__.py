"""Pure domain types for the GST settlement engine. ZERO I/O."""
