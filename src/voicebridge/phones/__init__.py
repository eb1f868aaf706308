"""
Phone number registration and SMS verification.
"""
