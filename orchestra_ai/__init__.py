"""Orchestra AI: an agent orchestration engine.

The package drives a *plan → execute → check* loop over a user request:

- ``orchestration`` holds the engine, the action dispatch layer, the token
  budget gate and the capability registry.
- ``state`` holds the checkpoint stores the stateful engine snapshots
  sessions into.
- ``core`` holds the ambient pieces (settings, logging, monitoring and the
  database helpers used by the SQL store).
"""
