"""Parent SMS notification: gateway, fan-out bridge and delivery records."""
