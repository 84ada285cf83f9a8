"""Engine services: pricing, payment flow, entitlement resolution and guest timers."""
