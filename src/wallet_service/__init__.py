"""Points ledger, withdrawal lifecycle and referral commission service."""
