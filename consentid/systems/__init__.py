"""consentid -- Systems."""
