"""Contract tests keeping fakes and real sinks aligned with revwalk protocols.

Run contract tests:
    pytest tests/contracts/ -v
"""
