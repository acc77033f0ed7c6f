"""
Relay Service - broker-to-viewer event relay

Relays broker messages to live viewers with ticket correlation and display
colors, and lets viewers republish messages back onto the broker.
"""
