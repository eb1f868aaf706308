"""
Principal authentication.

Sessions are issued upstream; this package only turns a bearer token into a
principal id.
"""
