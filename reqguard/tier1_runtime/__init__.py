"""reqguard.tier1_runtime subpackage."""
