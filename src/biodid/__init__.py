"""biodid - decentralized identity documents and capability tokens for
biological research data.

Subpackages:
- core: configuration, logging, exceptions
- storage: content stores and the PostgreSQL pool
- identity: identity documents and their lifecycle
- capabilities: capability token issuance and validation
"""

__version__ = "0.1.0"
