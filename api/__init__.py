"""HTTP surface of the lead CRM."""
