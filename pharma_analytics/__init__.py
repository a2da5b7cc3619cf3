"""Dynamic SQL predicate composition for pharmacy-network analytics."""
