"""
Inventory layer for the dish discovery engine.

Responsibilities:
- Define the Posting, PreferenceSignal and RequesterProfile records.
- Declare the collaborator ports the engine consumes (storage, accounts,
  place resolution, settings).
- Provide an in-memory reference store evaluating filter predicates with
  pandas masks, used for local runs and tests.
"""
