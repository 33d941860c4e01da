"""HTTP surface for webhooks, events, manual runs and queries."""
