"""
Live dashboard components for nginx-tail.

Modules:
    - model: Messages passed from producers to the dashboard
    - bus: Bounded multi-producer / single-consumer message queue
    - tailer: File tailers, the print ticker and the resize watcher
    - parsing: Tolerant access-log parsing and highlighting
    - speedometer: Interchangeable requests-per-second estimators
    - stats: Per-file, per-status-code aggregation
    - views: The diffing terminal renderer and the consumer loops

Architecture:
    The dashboard uses a producer-consumer pattern:
    1. One thread per log file sends Line messages to the MessageBus
    2. A ticker thread sends Print messages at a steady cadence
    3. The main thread drains the bus into the Renderer, which is the
       only owner of the aggregated statistics
"""
