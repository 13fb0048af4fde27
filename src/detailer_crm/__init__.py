"""Customer import and identity reconciliation service for detailer accounts."""
