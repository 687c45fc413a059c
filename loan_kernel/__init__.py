"""
Loan Kernel

In-memory core for warehouse loan requests:
- Typed error taxonomy with machine-readable codes
- Structured JSON logging
- Injectable clock
- Append-only persistence mirror (SQLAlchemy)
"""

__version__ = "0.1.0"
