"""TalentPay command-line interface."""
