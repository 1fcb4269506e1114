"""
Dish discovery engine.

Responsibilities:
- Validate request constraints and resolve geographic and age anchors.
- Filter the posting inventory down to eligible dishes.
- Rank unseen dishes through the preference-driven fallback cascade.
- Expose listing, recommendation and retraining operations to the API.
"""
