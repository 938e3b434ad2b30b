"""phaseloop: an explicit, injectable event-loop phase scheduler

This package models the scheduling contract of a callback-driven runtime
(priority-deferred callbacks, microtasks, timers, I/O completions, check-phase
callbacks and close callbacks) as plain Python objects, plus a worker unit that
hands a single result back to its parent.

Responsibilities:
    - Typed queues for each kind of deferred work
    - A phase loop with the micro-draining rule between callbacks
    - Asynchronous file reads and readable streams driving the loop
    - Worker processes reporting over a one-shot channel

Cross-cutting Concerns:
    Logging:
        - Module level loggers, DEBUG per callback invocation
    Error Handling:
        - Structured error hierarchy rooted at PhaseLoopError
        - Callback exceptions propagate out of the loop
"""

__version__ = "0.1.0"
