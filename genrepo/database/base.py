from abc import ABC, abstractmethod

class BaseDatabaseDriver(ABC):
    """Engine owner: opens/pings the store and releases its connection pool."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo

    @abstractmethod
    def connect(self):
        pass

    @abstractmethod
    def disconnect(self):
        pass
