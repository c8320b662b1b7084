"""Trust and reputation scoring for platform identities."""
