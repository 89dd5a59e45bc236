"""Certificate registry and issuance coordination."""
