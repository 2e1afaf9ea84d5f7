"""reqguard.tier0_core subpackage."""
