from inbox_facts.sources.memory import InMemoryMailSource
from inbox_facts.sources.protocol import MailSource

__all__ = ["MailSource", "InMemoryMailSource"]
