"""Reward service: accounts, access tokens, points ledger and referral rewards."""

__version__ = "1.0.0"
